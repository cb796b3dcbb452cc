import enum
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.models.all_models import (
    InquiryType, ContactPriority, ContactStatus, ContactSource, PreferredContact, to_local_naive
)
from app.routes.services.schemas import ServiceType
from app.schemas.user import UserBrief

PHONE_PATTERN = r"^\+?[1-9]\d{0,15}$"

class FollowUpType(str, enum.Enum):
    EMAIL = "email"
    PHONE = "phone"
    MEETING = "meeting"
    NOTE = "note"

# ================================
# REQUEST SCHEMAS
# ================================

class ContactCreate(BaseModel):
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    company: Optional[str] = Field(None, max_length=200)
    job_title: Optional[str] = Field(None, max_length=100)
    inquiry_type: InquiryType = InquiryType.GENERAL_INQUIRY
    subject: str = Field(..., min_length=5, max_length=200)
    message: str = Field(..., min_length=10, max_length=2000)
    services_of_interest: List[ServiceType] = []
    preferred_contact: Optional[PreferredContact] = None
    best_time_to_contact: Optional[str] = Field(None, max_length=100)
    timezone: Optional[str] = Field(None, max_length=50)
    budget_range: Optional[str] = Field(None, max_length=50)
    timeline: Optional[str] = Field(None, max_length=50)
    source: ContactSource = ContactSource.WEBSITE
    marketing_consent: bool = False
    gdpr_consent: bool

    @field_validator('first_name', 'last_name', 'subject', 'message')
    def strip_text(cls, v):
        return v.strip()

class ContactUpdate(BaseModel):
    status: Optional[ContactStatus] = None
    priority: Optional[ContactPriority] = None
    assigned_to: Optional[UUID] = None
    internal_note: Optional[str] = Field(None, max_length=2000)
    resolution: Optional[str] = Field(None, max_length=2000)

class FollowUpCreate(BaseModel):
    type: FollowUpType
    notes: str = Field(..., min_length=1, max_length=1000)
    scheduled_for: Optional[datetime] = None

    @field_validator('notes')
    def strip_notes(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Notes cannot be empty')
        return v

    @field_validator('scheduled_for')
    def normalize_schedule(cls, v):
        return to_local_naive(v)

# ================================
# RESPONSE SCHEMAS
# ================================

class ContactResponse(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    full_name: str
    email: str
    phone: Optional[str] = None
    company: Optional[str] = None
    job_title: Optional[str] = None
    inquiry_type: InquiryType
    subject: str
    message: str
    priority: ContactPriority
    status: ContactStatus
    source: ContactSource
    services_of_interest: Optional[List[str]] = None
    preferred_contact: Optional[PreferredContact] = None
    best_time_to_contact: Optional[str] = None
    timezone: Optional[str] = None
    budget_range: Optional[str] = None
    timeline: Optional[str] = None
    user_id: Optional[UUID] = None
    assignee: Optional[UserBrief] = None
    assigned_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[UUID] = None
    follow_up_date: Optional[datetime] = None
    follow_up_notes: Optional[str] = None
    follow_ups: Optional[List[Dict[str, Any]]] = None
    last_follow_up: Optional[datetime] = None
    internal_notes: Optional[List[Dict[str, Any]]] = None
    resolution: Optional[Dict[str, Any]] = None
    spam_score: int = 0
    is_spam: bool = False
    consent_given: bool = False
    marketing_consent: bool = False
    age: int = 0
    response_time: Optional[int] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
