from app.models.all_models import Content, ContentStatus, ContentType, User, UserRole
from app.utils.auth import verify_password
from seed import create_admin_user, create_sample_content


def test_create_admin_user(db):
    admin = create_admin_user(db, "Root@Teleradiology.io", "Adm1n!pass", "Site", "Admin")
    assert admin.role == UserRole.ADMIN
    assert admin.is_verified is True
    assert admin.email == "root@teleradiology.io"
    assert verify_password("Adm1n!pass", admin.password)

    assert create_admin_user(db, "root@teleradiology.io", "Adm1n!pass", "Site", "Admin") is None
    assert db.query(User).count() == 1


def test_sample_content_is_idempotent(db):
    admin = create_admin_user(db, "root@teleradiology.io", "Adm1n!pass", "Site", "Admin")
    create_sample_content(db, admin)
    create_sample_content(db, admin)

    services = db.query(Content).filter(Content.type == ContentType.SERVICE).all()
    assert len(services) == 2
    assert all(s.status == ContentStatus.PUBLISHED and s.published_at for s in services)
    assert {s.slug for s in services} == {"247-teleradiology-coverage", "ai-assisted-reporting"}
    assert db.query(Content).filter(Content.slug == "welcome").one().author_id == admin.id
