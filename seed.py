import argparse

from app.database import SessionLocal, init_db
from app.models.all_models import (
    User, UserRole, Content, ContentType, ContentStatus, local_now
)
from app.utils.auth import hash_password

SAMPLE_SERVICES = [
    {
        "title": "24/7 Teleradiology Coverage",
        "content": "<p>Round-the-clock reads by board-certified radiologists.</p>",
        "service_details": {
            "service_type": "coverage_24x7",
            "description": "Overnight and weekend coverage for hospitals and imaging centers.",
            "pricing": {"type": "per_study", "amount": 45, "currency": "USD"},
            "features": ["Sub-30 minute STAT reads", "Dedicated subspecialists"],
            "benefits": ["No overnight staffing gaps"],
            "technical_specs": {},
            "availability": {"hours": "24x7"},
            "turnaround_time": {"routine": 24, "urgent": 4, "stat": 1},
            "certifications": ["HIPAA"],
            "is_active": True,
        },
    },
    {
        "title": "AI-Assisted Reporting",
        "content": "<p>Structured reports drafted by AI and signed by radiologists.</p>",
        "service_details": {
            "service_type": "ai_reporting",
            "description": "AI pre-reads that prioritise critical findings.",
            "pricing": {"type": "subscription", "amount": 1500, "currency": "USD"},
            "features": ["Critical finding triage", "Structured templates"],
            "benefits": ["Faster turnaround"],
            "technical_specs": {"modalities": ["CT", "MR", "XR"]},
            "availability": {"hours": "24x7"},
            "turnaround_time": {"routine": 12, "urgent": 2, "stat": 1},
            "certifications": ["FDA 510(k)"],
            "is_active": True,
        },
    },
]

def create_admin_user(db, email, password, first_name, last_name, phone=None):
    existing_user = db.query(User).filter(User.email == email.strip().lower()).first()
    if existing_user:
        print(f"Error: User with email {email} already exists")
        return None

    admin = User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone=phone,
        password=hash_password(password),
        role=UserRole.ADMIN,
        is_active=True,
        is_verified=True,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)

    print(f"Admin user created successfully: {admin.email}")
    return admin

def create_sample_content(db, author):
    created = 0
    for service in SAMPLE_SERVICES:
        if db.query(Content).filter(Content.title == service["title"]).first():
            continue
        db.add(Content(
            **service,
            type=ContentType.SERVICE,
            status=ContentStatus.PUBLISHED,
            featured=True,
            author_id=author.id if author else None,
        ))
        created += 1

    if not db.query(Content).filter(Content.slug == "welcome").first():
        db.add(Content(
            title="Welcome",
            slug="welcome",
            type=ContentType.PAGE,
            status=ContentStatus.PUBLISHED,
            content="<h1>AI Teleradiology</h1><p>Expert reads, delivered fast.</p>",
            published_at=local_now(),
            author_id=author.id if author else None,
        ))
        created += 1

    db.commit()
    print(f"Sample content created: {created} item(s)")

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the first admin user and optional sample content")
    parser.add_argument("--email", required=True, help="Admin email address")
    parser.add_argument("--password", required=True, help="Admin password")
    parser.add_argument("--first-name", required=True, help="First name")
    parser.add_argument("--last-name", required=True, help="Last name")
    parser.add_argument("--phone", help="Phone number")
    parser.add_argument("--with-content", action="store_true", help="Also create sample services and pages")

    args = parser.parse_args()

    init_db()
    session = SessionLocal()
    try:
        admin = create_admin_user(
            session,
            email=args.email,
            password=args.password,
            first_name=args.first_name,
            last_name=args.last_name,
            phone=args.phone,
        )
        if args.with_content:
            author = admin or session.query(User).filter(User.role == UserRole.ADMIN).first()
            create_sample_content(session, author)
    finally:
        session.close()
