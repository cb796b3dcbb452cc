import enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

class ServiceType(str, enum.Enum):
    TELERADIOLOGY = "teleradiology"
    AI_REPORTING = "ai_reporting"
    PACS_INTEGRATION = "pacs_integration"
    COVERAGE_24X7 = "coverage_24x7"
    QUALITY_ASSURANCE = "quality_assurance"
    CONSULTATION = "consultation"

class PricingType(str, enum.Enum):
    FIXED = "fixed"
    PER_STUDY = "per_study"
    SUBSCRIPTION = "subscription"
    CUSTOM = "custom"

class Currency(str, enum.Enum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    CAD = "CAD"
    AUD = "AUD"

class AvailabilityHours(str, enum.Enum):
    ALWAYS = "24x7"
    BUSINESS_HOURS = "business_hours"
    CUSTOM = "custom"

class PriceRange(str, enum.Enum):
    FREE = "free"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    ENTERPRISE = "enterprise"

class Pricing(BaseModel):
    type: Optional[PricingType] = None
    amount: Optional[float] = Field(None, ge=0)
    currency: Currency = Currency.USD

class ServiceAvailability(BaseModel):
    hours: Optional[AvailabilityHours] = None
    timezone: Optional[str] = Field(None, max_length=50)

class TurnaroundTime(BaseModel):
    """Turnaround targets in hours."""
    routine: Optional[int] = Field(None, ge=1)
    urgent: Optional[int] = Field(None, ge=1)
    stat: Optional[int] = Field(None, ge=1)

class ServiceBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=1000)
    content: str = Field(..., min_length=1)
    service_type: ServiceType
    pricing: Pricing = Pricing()
    features: List[str] = []
    benefits: List[str] = []
    technical_specs: Dict[str, Any] = {}
    availability: ServiceAvailability = ServiceAvailability()
    turnaround_time: TurnaroundTime = TurnaroundTime()
    certifications: List[str] = []
    is_active: bool = True
    featured: bool = False
    featured_image: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    tags: List[str] = []

    @field_validator('title', 'description', 'content')
    def strip_text(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Field cannot be empty')
        return v

    @field_validator('features', 'benefits')
    def check_list_items(cls, v):
        items = [item.strip() for item in v if item and item.strip()]
        if any(len(item) > 200 for item in items):
            raise ValueError('Each item cannot exceed 200 characters')
        return items

    @field_validator('certifications')
    def check_certifications(cls, v):
        items = [item.strip() for item in v if item and item.strip()]
        if any(len(item) > 100 for item in items):
            raise ValueError('Each certification cannot exceed 100 characters')
        return items

    def service_details(self) -> Dict[str, Any]:
        return {
            "service_type": self.service_type.value,
            "description": self.description,
            "pricing": self.pricing.model_dump(mode="json"),
            "features": self.features,
            "benefits": self.benefits,
            "technical_specs": self.technical_specs,
            "availability": self.availability.model_dump(mode="json"),
            "turnaround_time": self.turnaround_time.model_dump(),
            "certifications": self.certifications,
            "is_active": self.is_active,
        }

class ServiceCreate(ServiceBase):
    slug: Optional[str] = Field(None, max_length=255, pattern=r"^[a-z0-9-]+$")

class ServiceUpdate(ServiceBase):
    pass
