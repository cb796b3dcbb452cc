from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, HttpUrl, field_validator

from app.models.all_models import (
    Industry, CompanySize, LeadSource, LeadStatus, Priority, Budget, Timeline, to_local_naive
)
from app.schemas.user import UserBrief

PHONE_PATTERN = r"^\+?[1-9]\d{0,15}$"
CLOSED_STATUSES = (LeadStatus.CLOSED_WON, LeadStatus.CLOSED_LOST)

# ================================
# REQUEST SCHEMAS
# ================================

class LeadCreate(BaseModel):
    company_name: str = Field(..., min_length=2, max_length=200)
    contact_name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    job_title: Optional[str] = Field(None, max_length=100)
    industry: Industry
    company_size: Optional[CompanySize] = None
    location: Optional[str] = Field(None, max_length=200)
    website: Optional[HttpUrl] = None
    source: LeadSource = LeadSource.WEBSITE
    services_of_interest: List[str] = []
    pain_points: Optional[str] = Field(None, max_length=1000)
    current_solution: Optional[str] = Field(None, max_length=500)
    budget: Budget = Budget.NOT_SPECIFIED
    timeline: Timeline = Timeline.NOT_SPECIFIED
    estimated_value: Optional[float] = Field(None, ge=0)
    expected_close_date: Optional[date] = None
    consent_given: bool
    marketing_consent: bool = False

    @field_validator('company_name', 'contact_name')
    def strip_text(cls, v):
        return v.strip()

    @field_validator('consent_given')
    def require_consent(cls, v):
        if not v:
            raise ValueError('Consent is required')
        return v

class LeadUpdate(BaseModel):
    status: Optional[LeadStatus] = None
    priority: Optional[Priority] = None
    assigned_to: Optional[UUID] = None
    estimated_value: Optional[float] = Field(None, ge=0)
    final_value: Optional[float] = Field(None, ge=0)
    expected_close_date: Optional[date] = None
    next_follow_up_date: Optional[datetime] = None
    pain_points: Optional[str] = Field(None, max_length=1000)
    current_solution: Optional[str] = Field(None, max_length=500)
    tags: Optional[List[str]] = None
    decision_makers: Optional[List[Dict[str, Any]]] = None

    @field_validator('next_follow_up_date')
    def normalize_follow_up(cls, v):
        return to_local_naive(v)

class LeadNote(BaseModel):
    notes: Optional[str] = Field(None, max_length=1000)

class LeadClose(BaseModel):
    status: LeadStatus
    final_value: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator('status')
    def check_closed(cls, v):
        if v not in CLOSED_STATUSES:
            raise ValueError('Status must be closed-won or closed-lost')
        return v

# ================================
# RESPONSE SCHEMAS
# ================================

class LeadResponse(BaseModel):
    id: UUID
    company_name: str
    contact_name: str
    email: str
    phone: Optional[str] = None
    job_title: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    industry: Industry
    company_size: Optional[CompanySize] = None
    source: LeadSource
    status: LeadStatus
    priority: Priority
    estimated_value: Optional[float] = None
    final_value: Optional[float] = None
    currency: str = "USD"
    expected_close_date: Optional[date] = None
    services_of_interest: Optional[List[str]] = None
    decision_makers: Optional[List[Dict[str, Any]]] = None
    pain_points: Optional[str] = None
    current_solution: Optional[str] = None
    budget: Budget
    timeline: Timeline
    notes: Optional[List[Dict[str, Any]]] = None
    tags: Optional[List[str]] = None
    assignee: Optional[UserBrief] = None
    assigned_at: Optional[datetime] = None
    qualifier: Optional[UserBrief] = None
    qualified_at: Optional[datetime] = None
    closer: Optional[UserBrief] = None
    closed_at: Optional[datetime] = None
    last_contact_date: Optional[datetime] = None
    next_follow_up_date: Optional[datetime] = None
    lead_score: int = 0
    lead_age: int = 0
    days_since_last_contact: Optional[int] = None
    consent_given: bool
    marketing_consent: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class LeadSummary(BaseModel):
    id: UUID
    company_name: str
    contact_name: str
    industry: Industry
    status: LeadStatus
    priority: Priority
    lead_score: int = 0
    last_contact_date: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
