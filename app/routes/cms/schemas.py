from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.models.all_models import ContentType, ContentStatus, to_local_naive
from app.schemas.user import UserBrief

SLUG_PATTERN = r"^[a-z0-9-]+$"

class SeoMeta(BaseModel):
    meta_title: Optional[str] = Field(None, max_length=60)
    meta_description: Optional[str] = Field(None, max_length=160)
    keywords: List[str] = []
    canonical_url: Optional[str] = None
    no_index: bool = False

class TestimonialDetails(BaseModel):
    client_name: Optional[str] = None
    client_title: Optional[str] = None
    client_company: Optional[str] = None
    rating: Optional[int] = Field(None, ge=1, le=5)
    quote: Optional[str] = None

class ContentBase(BaseModel):
    content: Optional[str] = None
    excerpt: Optional[str] = Field(None, max_length=500)
    featured_image: Optional[str] = None
    gallery: Optional[List[str]] = None
    seo: Optional[SeoMeta] = None
    category: Optional[str] = Field(None, max_length=100)
    tags: Optional[List[str]] = None
    scheduled_at: Optional[datetime] = None
    featured: Optional[bool] = None
    priority: Optional[int] = Field(None, ge=0, le=10)
    service_details: Optional[Dict[str, Any]] = None
    testimonial: Optional[TestimonialDetails] = None
    case_study: Optional[Dict[str, Any]] = None
    faq: Optional[Dict[str, Any]] = None
    custom_fields: Optional[Dict[str, Any]] = None

    @field_validator('scheduled_at')
    def normalize_schedule(cls, v):
        return to_local_naive(v)

class ContentCreate(ContentBase):
    title: str = Field(..., min_length=1, max_length=200)
    slug: Optional[str] = Field(None, max_length=255, pattern=SLUG_PATTERN)
    type: ContentType
    status: ContentStatus = ContentStatus.DRAFT

class ContentUpdate(ContentBase):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    slug: Optional[str] = Field(None, max_length=255, pattern=SLUG_PATTERN)
    type: Optional[ContentType] = None
    status: Optional[ContentStatus] = None

class ContentResponse(BaseModel):
    id: UUID
    title: str
    slug: str
    type: ContentType
    status: ContentStatus
    content: Optional[str] = None
    excerpt: Optional[str] = None
    featured_image: Optional[str] = None
    gallery: Optional[List[str]] = None
    seo: Optional[Dict[str, Any]] = None
    author: Optional[UserBrief] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    published_at: Optional[datetime] = None
    scheduled_at: Optional[datetime] = None
    view_count: int = 0
    featured: bool = False
    priority: int = 0
    service_details: Optional[Dict[str, Any]] = None
    testimonial: Optional[Dict[str, Any]] = None
    case_study: Optional[Dict[str, Any]] = None
    faq: Optional[Dict[str, Any]] = None
    custom_fields: Optional[Dict[str, Any]] = None
    analytics: Optional[Dict[str, Any]] = None
    version: int = 1
    previous_versions: Optional[List[Dict[str, Any]]] = None
    reading_time: int = 0
    url: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
