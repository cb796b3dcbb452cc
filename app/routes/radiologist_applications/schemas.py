import enum
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.models.all_models import Specialization, Availability, ApplicationStatus, Priority
from app.schemas.user import UserBrief

PHONE_PATTERN = r"^\+?[1-9]\d{0,15}$"

class Shift(str, enum.Enum):
    DAY = "day"
    EVENING = "evening"
    NIGHT = "night"
    WEEKEND = "weekend"

class SalaryType(str, enum.Enum):
    HOURLY = "hourly"
    PER_CASE = "per_case"
    ANNUAL = "annual"

class ApplicationCreate(BaseModel):
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    phone: str = Field(..., pattern=PHONE_PATTERN)
    license_number: str = Field(..., min_length=5, max_length=50)
    specialization: Specialization
    experience: int = Field(..., ge=0, le=50)
    education: Optional[str] = Field(None, max_length=1000)
    current_employer: Optional[str] = Field(None, max_length=200)
    current_position: Optional[str] = Field(None, max_length=100)
    availability: Availability = Availability.FLEXIBLE
    preferred_shifts: List[Shift] = []
    certifications: List[str] = []
    languages: List[str] = []
    references: List[Dict[str, Any]] = []
    message: Optional[str] = Field(None, max_length=2000)
    resume_url: Optional[str] = Field(None, max_length=500)
    portfolio_url: Optional[str] = Field(None, max_length=500)
    linkedin_url: Optional[str] = Field(None, max_length=500)
    expected_salary: Optional[float] = Field(None, ge=0)
    salary_type: Optional[SalaryType] = None
    start_date: Optional[date] = None
    consent_given: bool

    @field_validator('first_name', 'last_name', 'license_number')
    def strip_text(cls, v):
        return v.strip()

    @field_validator('consent_given')
    def require_consent(cls, v):
        if not v:
            raise ValueError('Consent is required')
        return v

class ApplicationUpdate(BaseModel):
    status: Optional[ApplicationStatus] = None
    priority: Optional[Priority] = None
    review_notes: Optional[str] = Field(None, max_length=1000)
    availability: Optional[Availability] = None
    preferred_shifts: Optional[List[Shift]] = None
    expected_salary: Optional[float] = Field(None, ge=0)
    start_date: Optional[date] = None

class ApproveRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=1000)

class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator('reason')
    def strip_reason(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Rejection reason is required')
        return v

class ApplicationResponse(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    full_name: str
    email: str
    phone: str
    license_number: str
    specialization: Specialization
    experience: int
    education: Optional[str] = None
    current_employer: Optional[str] = None
    current_position: Optional[str] = None
    availability: Availability
    preferred_shifts: Optional[List[str]] = None
    certifications: Optional[List[str]] = None
    languages: Optional[List[str]] = None
    references: Optional[List[Dict[str, Any]]] = None
    message: Optional[str] = None
    status: ApplicationStatus
    priority: Priority
    reviewer: Optional[UserBrief] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    resume_url: Optional[str] = None
    portfolio_url: Optional[str] = None
    linkedin_url: Optional[str] = None
    expected_salary: Optional[float] = None
    salary_type: Optional[str] = None
    start_date: Optional[date] = None
    consent_given: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
