# app/models/all_models.py
import copy
import enum
import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Optional

import pytz
from sqlalchemy import (
    Column, String, Boolean, DateTime, Date, ForeignKey, Text, Integer, Float, JSON, Enum, Uuid,
    event, func, or_, inspect
)
from sqlalchemy.orm import declarative_base, relationship, validates, Session

from app.config import settings
from app.utils.scoring import (
    calculate_lead_score,
    calculate_spam_score,
    is_spam_score,
    slugify,
    build_excerpt,
    reading_time,
    normalize_tags,
)

logger = logging.getLogger(__name__)

Base = declarative_base()

# Timezone setup
APP_TZ = pytz.timezone(settings.TIMEZONE)

def local_now() -> datetime:
    """Wall-clock time in the configured timezone, stored naive."""
    return datetime.now(APP_TZ).replace(tzinfo=None)

def to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(APP_TZ).replace(tzinfo=None)

def _enum_column(enum_cls, name: str):
    return Enum(enum_cls, name=name, values_callable=lambda members: [m.value for m in members])

# Enums
class UserRole(str, enum.Enum):
    USER = "user"
    RADIOLOGIST = "radiologist"
    ADMIN = "admin"
    CMS_EDITOR = "cms_editor"
    SALES_AGENT = "sales_agent"
    HR = "hr"
    ACCOUNTANT = "accountant"

class ContentType(str, enum.Enum):
    PAGE = "page"
    BLOG_POST = "blog_post"
    SERVICE = "service"
    CASE_STUDY = "case_study"
    NEWS = "news"
    FAQ = "faq"
    TESTIMONIAL = "testimonial"

class ContentStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"

class InquiryType(str, enum.Enum):
    GENERAL_INQUIRY = "general_inquiry"
    SERVICE_REQUEST = "service_request"
    TECHNICAL_SUPPORT = "technical_support"
    PARTNERSHIP = "partnership"
    PRICING = "pricing"
    DEMO_REQUEST = "demo_request"
    COMPLAINT = "complaint"
    FEEDBACK = "feedback"
    MEDIA_INQUIRY = "media_inquiry"
    CAREER_INQUIRY = "career_inquiry"

class ContactPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

class ContactStatus(str, enum.Enum):
    NEW = "new"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"
    SPAM = "spam"

class ContactSource(str, enum.Enum):
    WEBSITE = "website"
    EMAIL = "email"
    PHONE = "phone"
    SOCIAL_MEDIA = "social_media"
    REFERRAL = "referral"
    OTHER = "other"

class PreferredContact(str, enum.Enum):
    EMAIL = "email"
    PHONE = "phone"
    VIDEO_CALL = "video_call"
    IN_PERSON = "in_person"

class Specialization(str, enum.Enum):
    DIAGNOSTIC_RADIOLOGY = "diagnostic_radiology"
    INTERVENTIONAL_RADIOLOGY = "interventional_radiology"
    NUCLEAR_MEDICINE = "nuclear_medicine"
    RADIATION_ONCOLOGY = "radiation_oncology"
    NEURORADIOLOGY = "neuroradiology"
    MUSCULOSKELETAL_RADIOLOGY = "musculoskeletal_radiology"
    CHEST_RADIOLOGY = "chest_radiology"
    ABDOMINAL_RADIOLOGY = "abdominal_radiology"
    PEDIATRIC_RADIOLOGY = "pediatric_radiology"
    BREAST_IMAGING = "breast_imaging"
    EMERGENCY_RADIOLOGY = "emergency_radiology"
    OTHER = "other"

class Availability(str, enum.Enum):
    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    CONTRACT = "contract"
    PER_CASE = "per_case"
    FLEXIBLE = "flexible"

class ApplicationStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ON_HOLD = "on_hold"

class Priority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

class Industry(str, enum.Enum):
    HEALTHCARE = "healthcare"
    HOSPITAL = "hospital"
    CLINIC = "clinic"
    IMAGING_CENTER = "imaging_center"
    TELEHEALTH = "telehealth"
    MEDICAL_DEVICE = "medical_device"
    PHARMACEUTICAL = "pharmaceutical"
    INSURANCE = "insurance"
    GOVERNMENT = "government"
    RESEARCH = "research"
    EDUCATION = "education"
    OTHER = "other"

class CompanySize(str, enum.Enum):
    STARTUP = "startup"
    SMALL = "small_1_50"
    MEDIUM = "medium_51_200"
    LARGE = "large_201_1000"
    ENTERPRISE = "enterprise_1000_plus"

class LeadSource(str, enum.Enum):
    WEBSITE = "website"
    REFERRAL = "referral"
    COLD_CALL = "cold_call"
    EMAIL_CAMPAIGN = "email_campaign"
    SOCIAL_MEDIA = "social_media"
    TRADE_SHOW = "trade_show"
    WEBINAR = "webinar"
    CONTENT_MARKETING = "content_marketing"
    PARTNER = "partner"
    OTHER = "other"

class LeadStatus(str, enum.Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CLOSED_WON = "closed-won"
    CLOSED_LOST = "closed-lost"
    ON_HOLD = "on-hold"

class Budget(str, enum.Enum):
    UNDER_10K = "under_10k"
    FROM_10K_TO_50K = "10k_50k"
    FROM_50K_TO_100K = "50k_100k"
    FROM_100K_TO_500K = "100k_500k"
    FROM_500K_TO_1M = "500k_1m"
    OVER_1M = "over_1m"
    NOT_SPECIFIED = "not_specified"

class Timeline(str, enum.Enum):
    IMMEDIATE = "immediate"
    WITHIN_MONTH = "within_month"
    WITHIN_QUARTER = "within_quarter"
    WITHIN_6_MONTHS = "within_6_months"
    WITHIN_YEAR = "within_year"
    NOT_SPECIFIED = "not_specified"

DEFAULT_PREFERENCES = {
    "notifications": {"email": True, "sms": False, "push": True},
    "theme": "light",
    "language": "en",
}

MAX_LOGIN_ATTEMPTS = 5
LOCK_DURATION = timedelta(hours=2)

class AuthenticationError(Exception):
    """Raised by credential checks; the message is safe to return to clients."""

# ================================
# USER TABLE
# ================================

class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=False)
    role = Column(_enum_column(UserRole, "user_role"), nullable=False, default=UserRole.USER)
    specialization = Column(String(100))
    license_number = Column(String(50))
    institution = Column(String(200))
    phone = Column(String(20))
    is_active = Column(Boolean, default=True, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    verification_token = Column(String(255))
    verification_token_expires = Column(DateTime)
    reset_password_token = Column(String(255))
    reset_password_expires = Column(DateTime)
    last_login = Column(DateTime)
    login_attempts = Column(Integer, default=0, nullable=False)
    lock_until = Column(DateTime)
    preferences = Column(JSON, default=lambda: copy.deepcopy(DEFAULT_PREFERENCES))
    avatar = Column(String(500))
    created_at = Column(DateTime, default=local_now, nullable=False)
    updated_at = Column(DateTime, default=local_now, onupdate=local_now, nullable=False)

    # Relationships
    contents = relationship("Content", back_populates="author")

    @validates("email")
    def _normalize_email(self, key, value):
        return value.strip().lower() if value else value

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_locked(self) -> bool:
        return bool(self.lock_until and self.lock_until > local_now())

    def inc_login_attempts(self) -> None:
        # A lock that has already expired starts a fresh window
        if self.lock_until and self.lock_until <= local_now():
            self.login_attempts = 1
            self.lock_until = None
            return

        self.login_attempts = (self.login_attempts or 0) + 1
        if self.login_attempts >= MAX_LOGIN_ATTEMPTS and not self.is_locked:
            self.lock_until = local_now() + LOCK_DURATION
            logger.warning("Account %s locked after %s failed logins", self.email, self.login_attempts)

    def reset_login_attempts(self) -> None:
        self.login_attempts = 0
        self.lock_until = None

    def generate_verification_token(self) -> str:
        token = secrets.token_hex(32)
        self.verification_token = token
        self.verification_token_expires = local_now() + timedelta(hours=24)
        return token

    @classmethod
    def find_by_credentials(cls, db: Session, email: str, password: str) -> "User":
        """Resolve a user from login credentials, maintaining the lockout counter."""
        from app.utils.auth import verify_password

        user = db.query(cls).filter(cls.email == email.strip().lower()).first()
        if not user:
            raise AuthenticationError("Invalid login credentials")
        if not user.is_active:
            raise AuthenticationError("Account is deactivated")
        if user.is_locked:
            raise AuthenticationError("Account is temporarily locked due to too many failed login attempts")

        if not verify_password(password, user.password):
            user.inc_login_attempts()
            db.commit()
            raise AuthenticationError("Invalid login credentials")

        if user.login_attempts:
            user.reset_login_attempts()
        user.last_login = local_now()
        db.commit()
        db.refresh(user)
        return user

# ================================
# CONTENT TABLE
# ================================

CONTENT_URL_BASES = {
    ContentType.PAGE: "/",
    ContentType.BLOG_POST: "/blog/",
    ContentType.SERVICE: "/services/",
    ContentType.CASE_STUDY: "/case-studies/",
    ContentType.NEWS: "/news/",
    ContentType.FAQ: "/faq/",
    ContentType.TESTIMONIAL: "/testimonials/",
}

class Content(Base):
    __tablename__ = "contents"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    type = Column(_enum_column(ContentType, "content_type"), nullable=False)
    status = Column(_enum_column(ContentStatus, "content_status"), nullable=False, default=ContentStatus.DRAFT)
    content = Column(Text)
    excerpt = Column(String(500))
    featured_image = Column(String(500))
    gallery = Column(JSON, default=list)
    seo = Column(JSON, default=dict)
    author_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    category = Column(String(100))
    tags = Column(JSON, default=list)
    published_at = Column(DateTime)
    scheduled_at = Column(DateTime)
    view_count = Column(Integer, default=0, nullable=False)
    featured = Column(Boolean, default=False, nullable=False)
    priority = Column(Integer, default=0, nullable=False)
    service_details = Column(JSON)
    testimonial = Column(JSON)
    case_study = Column(JSON)
    faq = Column(JSON)
    custom_fields = Column(JSON)
    analytics = Column(JSON, default=dict)
    version = Column(Integer, default=1, nullable=False)
    previous_versions = Column(JSON, default=list)
    created_at = Column(DateTime, default=local_now, nullable=False)
    updated_at = Column(DateTime, default=local_now, onupdate=local_now, nullable=False)

    # Relationships
    author = relationship("User", back_populates="contents")

    @validates("tags")
    def _normalize_tags(self, key, value):
        return normalize_tags(value)

    @property
    def reading_time(self) -> int:
        return reading_time(self.content)

    @property
    def url(self) -> str:
        return f"{CONTENT_URL_BASES.get(self.type, '/')}{self.slug}"

    def increment_view(self) -> None:
        self.view_count = (self.view_count or 0) + 1
        analytics = dict(self.analytics or {})
        analytics["impressions"] = analytics.get("impressions", 0) + 1
        self.analytics = analytics

    def create_version(self, modified_by=None) -> None:
        snapshot = {
            "version": self.version,
            "title": self.title,
            "content": self.content,
            "modified_at": local_now().isoformat(),
            "modified_by": str(modified_by) if modified_by else None,
        }
        self.previous_versions = [*(self.previous_versions or []), snapshot]
        self.version = (self.version or 1) + 1

    def publish(self) -> None:
        self.status = ContentStatus.PUBLISHED
        if not self.published_at:
            self.published_at = local_now()

    @classmethod
    def find_published(cls, db: Session, content_type: Optional[ContentType] = None):
        query = db.query(cls).filter(cls.status == ContentStatus.PUBLISHED)
        if content_type:
            query = query.filter(cls.type == content_type)
        return query.order_by(cls.published_at.desc())

    @classmethod
    def find_featured(cls, db: Session, limit: int = 5):
        return (
            db.query(cls)
            .filter(cls.status == ContentStatus.PUBLISHED, cls.featured.is_(True))
            .order_by(cls.priority.desc(), cls.published_at.desc())
            .limit(limit)
            .all()
        )

    @classmethod
    def search(cls, db: Session, term: str):
        pattern = f"%{term}%"
        return db.query(cls).filter(
            cls.status == ContentStatus.PUBLISHED,
            or_(cls.title.ilike(pattern), cls.content.ilike(pattern), cls.excerpt.ilike(pattern)),
        )

def _derive_content_fields(target: Content) -> None:
    if target.status is None:
        target.status = ContentStatus.DRAFT
    if not target.slug and target.title:
        target.slug = slugify(target.title)

    if (
        target.status == ContentStatus.DRAFT
        and target.scheduled_at
        and target.scheduled_at <= local_now()
    ):
        target.status = ContentStatus.PUBLISHED

    if target.status == ContentStatus.PUBLISHED and not target.published_at:
        target.published_at = local_now()

    if not target.excerpt and target.content:
        target.excerpt = build_excerpt(target.content)

    seo = dict(target.seo or {})
    if not seo.get("meta_title") and target.title:
        seo["meta_title"] = target.title[:60]
    if not seo.get("meta_description") and target.excerpt:
        seo["meta_description"] = target.excerpt[:160]
    if seo != (target.seo or {}):
        target.seo = seo

@event.listens_for(Content, "before_insert")
@event.listens_for(Content, "before_update")
def content_before_save(mapper, connection, target):
    _derive_content_fields(target)

# ================================
# CONTACT TABLE
# ================================

DATA_RETENTION = timedelta(days=365 * 2)
OVERDUE_AFTER = timedelta(days=3)

class Contact(Base):
    __tablename__ = "contacts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(20))
    company = Column(String(200))
    job_title = Column(String(100))
    inquiry_type = Column(_enum_column(InquiryType, "inquiry_type"), nullable=False, default=InquiryType.GENERAL_INQUIRY)
    subject = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    priority = Column(_enum_column(ContactPriority, "contact_priority"), nullable=False, default=ContactPriority.MEDIUM)
    status = Column(_enum_column(ContactStatus, "contact_status"), nullable=False, default=ContactStatus.NEW)
    source = Column(_enum_column(ContactSource, "contact_source"), nullable=False, default=ContactSource.WEBSITE)
    services_of_interest = Column(JSON, default=list)
    preferred_contact = Column(_enum_column(PreferredContact, "preferred_contact"), default=PreferredContact.EMAIL)
    best_time_to_contact = Column(String(100))
    timezone = Column(String(50))
    budget_range = Column(String(50))
    timeline = Column(String(50))
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    assigned_to = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    assigned_at = Column(DateTime)
    responded_at = Column(DateTime)
    responded_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    resolved_at = Column(DateTime)
    resolved_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    follow_up_date = Column(DateTime)
    follow_up_notes = Column(Text)
    follow_ups = Column(JSON, default=list)
    last_follow_up = Column(DateTime)
    internal_notes = Column(JSON, default=list)
    attachments = Column(JSON, default=list)
    resolution = Column(JSON)
    spam_score = Column(Integer, default=0, nullable=False)
    is_spam = Column(Boolean, default=False, nullable=False)
    consent_given = Column(Boolean, default=False, nullable=False)
    consent_date = Column(DateTime)
    marketing_consent = Column(Boolean, default=False, nullable=False)
    data_retention_date = Column(DateTime)
    ip_address = Column(String(45))
    user_agent = Column(String(500))
    created_at = Column(DateTime, default=local_now, nullable=False)
    updated_at = Column(DateTime, default=local_now, onupdate=local_now, nullable=False)

    # Relationships
    assignee = relationship("User", foreign_keys=[assigned_to])
    submitter = relationship("User", foreign_keys=[user_id])

    @validates("email")
    def _normalize_email(self, key, value):
        return value.strip().lower() if value else value

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def age(self) -> int:
        return (local_now() - self.created_at).days if self.created_at else 0

    @property
    def response_time(self) -> Optional[int]:
        """Minutes between submission and first response."""
        if not self.responded_at or not self.created_at:
            return None
        return int((self.responded_at - self.created_at).total_seconds() // 60)

    def add_note(self, note: str, user_id=None) -> dict:
        entry = {
            "id": str(uuid.uuid4()),
            "note": note,
            "created_by": str(user_id) if user_id else None,
            "created_at": local_now().isoformat(),
        }
        self.internal_notes = [*(self.internal_notes or []), entry]
        return entry

    def assign(self, user_id) -> None:
        self.assigned_to = user_id
        self.assigned_at = local_now()
        if self.status == ContactStatus.NEW:
            self.status = ContactStatus.IN_PROGRESS

    def mark_as_spam(self) -> None:
        self.is_spam = True
        self.status = ContactStatus.SPAM

    def schedule_follow_up(self, when: datetime, notes: Optional[str] = None) -> None:
        self.follow_up_date = when
        self.follow_up_notes = notes

    @classmethod
    def find_pending(cls, db: Session):
        return (
            db.query(cls)
            .filter(cls.status.in_([ContactStatus.NEW, ContactStatus.IN_PROGRESS]))
            .order_by(cls.created_at.asc())
            .all()
        )

    @classmethod
    def find_overdue(cls, db: Session):
        return (
            db.query(cls)
            .filter(
                cls.status.in_([ContactStatus.NEW, ContactStatus.IN_PROGRESS]),
                cls.created_at < local_now() - OVERDUE_AFTER,
            )
            .order_by(cls.created_at.asc())
            .all()
        )

    @classmethod
    def find_for_follow_up(cls, db: Session):
        return (
            db.query(cls)
            .filter(
                cls.follow_up_date.isnot(None),
                cls.follow_up_date <= local_now(),
                cls.status.notin_([ContactStatus.CLOSED, ContactStatus.SPAM]),
            )
            .order_by(cls.follow_up_date.asc())
            .all()
        )

    @classmethod
    def get_stats(cls, db: Session, start: Optional[datetime] = None, end: Optional[datetime] = None) -> dict:
        query = db.query(cls)
        if start:
            query = query.filter(cls.created_at >= start)
        if end:
            query = query.filter(cls.created_at <= end)

        def grouped(column):
            rows = query.with_entities(column, func.count(cls.id)).group_by(column).all()
            return {getattr(key, "value", key): count for key, count in rows}

        return {
            "total": query.count(),
            "by_status": grouped(cls.status),
            "by_type": grouped(cls.inquiry_type),
            "by_priority": grouped(cls.priority),
        }

@event.listens_for(Contact, "before_insert")
def contact_before_insert(mapper, connection, target):
    _derive_contact_fields(target, score_message=True)

@event.listens_for(Contact, "before_update")
def contact_before_update(mapper, connection, target):
    message_changed = inspect(target).attrs.message.history.has_changes()
    _derive_contact_fields(target, score_message=message_changed)

def _derive_contact_fields(target: Contact, score_message: bool) -> None:
    if target.consent_given and not target.data_retention_date:
        target.data_retention_date = local_now() + DATA_RETENTION

    if not score_message:
        return
    target.spam_score = max(calculate_spam_score(target.message), target.spam_score or 0)
    if is_spam_score(target.spam_score) and not target.is_spam:
        logger.info("Contact from %s flagged as spam (score %s)", target.email, target.spam_score)
        target.mark_as_spam()

# ================================
# RADIOLOGIST APPLICATION TABLE
# ================================

class RadiologistApplication(Base):
    __tablename__ = "radiologist_applications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(20), nullable=False)
    license_number = Column(String(50), nullable=False)
    specialization = Column(_enum_column(Specialization, "specialization"), nullable=False)
    experience = Column(Integer, nullable=False, default=0)
    education = Column(String(1000))
    current_employer = Column(String(200))
    current_position = Column(String(100))
    availability = Column(_enum_column(Availability, "availability"), nullable=False, default=Availability.FLEXIBLE)
    preferred_shifts = Column(JSON, default=list)
    certifications = Column(JSON, default=list)
    languages = Column(JSON, default=list)
    references = Column(JSON, default=list)
    message = Column(Text)
    status = Column(_enum_column(ApplicationStatus, "application_status"), nullable=False, default=ApplicationStatus.PENDING)
    priority = Column(_enum_column(Priority, "application_priority"), nullable=False, default=Priority.MEDIUM)
    reviewed_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    reviewed_at = Column(DateTime)
    review_notes = Column(String(1000))
    rejection_reason = Column(String(500))
    resume_url = Column(String(500))
    portfolio_url = Column(String(500))
    linkedin_url = Column(String(500))
    expected_salary = Column(Float)
    salary_type = Column(String(20))
    start_date = Column(Date)
    consent_given = Column(Boolean, default=False, nullable=False)
    consent_date = Column(DateTime)
    ip_address = Column(String(45))
    user_agent = Column(String(500))
    created_at = Column(DateTime, default=local_now, nullable=False)
    updated_at = Column(DateTime, default=local_now, onupdate=local_now, nullable=False)

    # Relationships
    reviewer = relationship("User", foreign_keys=[reviewed_by])

    @validates("email")
    def _normalize_email(self, key, value):
        return value.strip().lower() if value else value

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def approve(self, reviewer_id, notes: Optional[str] = None) -> None:
        self.status = ApplicationStatus.APPROVED
        self.reviewed_by = reviewer_id
        self.reviewed_at = local_now()
        if notes:
            self.review_notes = notes

    def reject(self, reviewer_id, reason: Optional[str] = None, notes: Optional[str] = None) -> None:
        self.status = ApplicationStatus.REJECTED
        self.reviewed_by = reviewer_id
        self.reviewed_at = local_now()
        if reason:
            self.rejection_reason = reason
        if notes:
            self.review_notes = notes

    @classmethod
    def find_pending(cls, db: Session):
        return (
            db.query(cls)
            .filter(cls.status == ApplicationStatus.PENDING)
            .order_by(cls.created_at.asc())
            .all()
        )

    @classmethod
    def find_by_specialization(cls, db: Session, specialization: Specialization):
        return (
            db.query(cls)
            .filter(cls.specialization == specialization)
            .order_by(cls.created_at.desc())
            .all()
        )

    @classmethod
    def _date_query(cls, db: Session, start=None, end=None):
        query = db.query(cls)
        if start:
            query = query.filter(cls.created_at >= start)
        if end:
            query = query.filter(cls.created_at <= end)
        return query

    @classmethod
    def get_stats(cls, db: Session, start: Optional[datetime] = None, end: Optional[datetime] = None) -> dict:
        query = cls._date_query(db, start, end)
        counts = dict(query.with_entities(cls.status, func.count(cls.id)).group_by(cls.status).all())
        total = sum(counts.values())
        approved = counts.get(ApplicationStatus.APPROVED, 0)
        return {
            "total": total,
            "pending": counts.get(ApplicationStatus.PENDING, 0),
            "approved": approved,
            "rejected": counts.get(ApplicationStatus.REJECTED, 0),
            "on_hold": counts.get(ApplicationStatus.ON_HOLD, 0),
            "approval_rate": round(approved / total * 100, 2) if total else 0,
        }

    @classmethod
    def get_specialization_stats(cls, db: Session, start: Optional[datetime] = None, end: Optional[datetime] = None) -> list:
        rows = (
            cls._date_query(db, start, end)
            .with_entities(cls.specialization, func.count(cls.id).label("count"))
            .group_by(cls.specialization)
            .order_by(func.count(cls.id).desc())
            .all()
        )
        return [{"specialization": spec.value, "count": count} for spec, count in rows]

@event.listens_for(RadiologistApplication, "before_update")
def application_before_update(mapper, connection, target):
    if (
        target.status in (ApplicationStatus.APPROVED, ApplicationStatus.REJECTED)
        and not target.reviewed_at
        and inspect(target).attrs.status.history.has_changes()
    ):
        target.reviewed_at = local_now()

# ================================
# SALES LEAD TABLE
# ================================

FOLLOW_UP_AFTER = timedelta(days=3)
OPEN_LEAD_STATUSES = [LeadStatus.NEW, LeadStatus.CONTACTED, LeadStatus.QUALIFIED]

class SalesLead(Base):
    __tablename__ = "sales_leads"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    company_name = Column(String(200), nullable=False)
    contact_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(20))
    job_title = Column(String(100))
    location = Column(String(200))
    website = Column(String(500))
    industry = Column(_enum_column(Industry, "industry"), nullable=False)
    company_size = Column(_enum_column(CompanySize, "company_size"))
    source = Column(_enum_column(LeadSource, "lead_source"), nullable=False, default=LeadSource.WEBSITE)
    status = Column(_enum_column(LeadStatus, "lead_status"), nullable=False, default=LeadStatus.NEW)
    priority = Column(_enum_column(Priority, "lead_priority"), nullable=False, default=Priority.MEDIUM)
    estimated_value = Column(Float)
    final_value = Column(Float)
    currency = Column(String(3), default="USD", nullable=False)
    expected_close_date = Column(Date)
    services_of_interest = Column(JSON, default=list)
    decision_makers = Column(JSON, default=list)
    pain_points = Column(String(1000))
    current_solution = Column(String(500))
    budget = Column(_enum_column(Budget, "lead_budget"), nullable=False, default=Budget.NOT_SPECIFIED)
    timeline = Column(_enum_column(Timeline, "lead_timeline"), nullable=False, default=Timeline.NOT_SPECIFIED)
    notes = Column(JSON, default=list)
    tags = Column(JSON, default=list)
    attachments = Column(JSON, default=list)
    assigned_to = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    assigned_at = Column(DateTime)
    qualified_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    qualified_at = Column(DateTime)
    closed_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    closed_at = Column(DateTime)
    last_contact_date = Column(DateTime)
    next_follow_up_date = Column(DateTime)
    lead_score = Column(Integer, default=0, nullable=False)
    consent_given = Column(Boolean, default=False, nullable=False)
    consent_date = Column(DateTime)
    marketing_consent = Column(Boolean, default=False, nullable=False)
    ip_address = Column(String(45))
    user_agent = Column(String(500))
    created_at = Column(DateTime, default=local_now, nullable=False)
    updated_at = Column(DateTime, default=local_now, onupdate=local_now, nullable=False)

    # Relationships
    assignee = relationship("User", foreign_keys=[assigned_to])
    qualifier = relationship("User", foreign_keys=[qualified_by])
    closer = relationship("User", foreign_keys=[closed_by])

    @validates("email")
    def _normalize_email(self, key, value):
        return value.strip().lower() if value else value

    @property
    def lead_age(self) -> int:
        return (local_now() - self.created_at).days if self.created_at else 0

    @property
    def days_since_last_contact(self) -> Optional[int]:
        if not self.last_contact_date:
            return None
        return (local_now() - self.last_contact_date).days

    def _append_note(self, note: Optional[str], note_type: str, user_id=None) -> None:
        entry = {
            "id": str(uuid.uuid4()),
            "note": note,
            "type": note_type,
            "created_by": str(user_id) if user_id else None,
            "created_at": local_now().isoformat(),
        }
        self.notes = [*(self.notes or []), entry]

    def update_last_contact(self, notes: Optional[str] = None, user_id=None) -> None:
        self.last_contact_date = local_now()
        if notes:
            self._append_note(notes, "contact", user_id)

    def qualify(self, user_id, notes: Optional[str] = None) -> None:
        self.status = LeadStatus.QUALIFIED
        self.qualified_by = user_id
        self.qualified_at = local_now()
        if notes:
            self._append_note(notes, "qualification", user_id)

    def close(self, status: LeadStatus, user_id, notes: Optional[str] = None, final_value: Optional[float] = None) -> None:
        self.status = status
        self.closed_by = user_id
        self.closed_at = local_now()
        if final_value is not None:
            self.final_value = final_value
        if notes:
            self._append_note(notes, "closure", user_id)

    @classmethod
    def find_by_status(cls, db: Session, status: LeadStatus):
        return db.query(cls).filter(cls.status == status).order_by(cls.created_at.desc()).all()

    @classmethod
    def find_hot_leads(cls, db: Session):
        return (
            db.query(cls)
            .filter(cls.priority == Priority.HIGH, cls.status.in_(OPEN_LEAD_STATUSES))
            .order_by(cls.lead_score.desc(), cls.created_at.desc())
            .all()
        )

    @classmethod
    def find_needing_follow_up(cls, db: Session):
        cutoff = local_now() - FOLLOW_UP_AFTER
        return (
            db.query(cls)
            .filter(
                cls.status.in_([LeadStatus.CONTACTED, LeadStatus.QUALIFIED]),
                or_(cls.last_contact_date.is_(None), cls.last_contact_date < cutoff),
            )
            .order_by(cls.last_contact_date.asc())
            .all()
        )

    @classmethod
    def get_stats(cls, db: Session, start: Optional[datetime] = None, end: Optional[datetime] = None) -> dict:
        query = db.query(cls)
        if start:
            query = query.filter(cls.created_at >= start)
        if end:
            query = query.filter(cls.created_at <= end)

        counts = dict(query.with_entities(cls.status, func.count(cls.id)).group_by(cls.status).all())
        total = sum(counts.values())
        closed_won = counts.get(LeadStatus.CLOSED_WON, 0)

        total_value = query.with_entities(func.coalesce(func.sum(cls.estimated_value), 0)).scalar() or 0
        won_value = (
            query.filter(cls.status == LeadStatus.CLOSED_WON)
            .with_entities(func.coalesce(func.sum(func.coalesce(cls.final_value, cls.estimated_value)), 0))
            .scalar()
            or 0
        )

        return {
            "total": total,
            "new_leads": counts.get(LeadStatus.NEW, 0),
            "qualified": counts.get(LeadStatus.QUALIFIED, 0),
            "proposals": counts.get(LeadStatus.PROPOSAL, 0),
            "closed_won": closed_won,
            "closed_lost": counts.get(LeadStatus.CLOSED_LOST, 0),
            "conversion_rate": round(closed_won / total * 100, 2) if total else 0,
            "total_value": float(total_value),
            "won_value": float(won_value),
            "average_value": round(float(total_value) / total, 2) if total else 0,
        }

@event.listens_for(SalesLead, "before_insert")
@event.listens_for(SalesLead, "before_update")
def sales_lead_before_save(mapper, connection, target):
    target.lead_score = calculate_lead_score(
        industry=target.industry,
        company_size=target.company_size,
        budget=target.budget,
        timeline=target.timeline,
        source=target.source,
        phone=target.phone,
        website=target.website,
    )
