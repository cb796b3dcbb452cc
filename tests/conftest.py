import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["BCRYPT_SALT_ROUNDS"] = "4"
os.environ.setdefault("VALID_API_KEYS", "test-key-1,test-key-2")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.database import get_db
from app.models.all_models import Base, User, UserRole
from app.utils.auth import hash_password, issue_tokens, reset_user_rate_limits
from main import app

PASSWORD = "Passw0rd!"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture
def client(db):
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    reset_user_rate_limits()
    yield TestClient(app)
    app.dependency_overrides.clear()

@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(role: UserRole = UserRole.USER, **overrides) -> User:
        counter["n"] += 1
        fields = {
            "first_name": "Test",
            "last_name": f"{role.value.title()}{counter['n']}",
            "email": f"{role.value}{counter['n']}@teleradiology.io",
            "password": hash_password(PASSWORD),
            "role": role,
            "is_active": True,
            "is_verified": True,
        }
        fields.update(overrides)
        user = User(**fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user

def auth_header(user: User) -> dict:
    return {"Authorization": f"Bearer {issue_tokens(user)['token']}"}

@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN)

@pytest.fixture
def editor(make_user):
    return make_user(UserRole.CMS_EDITOR)

@pytest.fixture
def radiologist(make_user):
    return make_user(UserRole.RADIOLOGIST)

@pytest.fixture
def member(make_user):
    return make_user(UserRole.USER)

@pytest.fixture
def admin_headers(admin):
    return auth_header(admin)

@pytest.fixture
def editor_headers(editor):
    return auth_header(editor)

@pytest.fixture
def radiologist_headers(radiologist):
    return auth_header(radiologist)

@pytest.fixture
def user_headers(member):
    return auth_header(member)

@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    return tmp_path
