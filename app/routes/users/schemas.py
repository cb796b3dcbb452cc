from typing import Any, Dict, Optional

from pydantic import BaseModel, EmailStr, Field

from app.models.all_models import UserRole

class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    phone: Optional[str] = Field(None, max_length=20)
    specialization: Optional[str] = Field(None, max_length=100)
    license_number: Optional[str] = Field(None, max_length=50)
    institution: Optional[str] = Field(None, max_length=200)
    preferences: Optional[Dict[str, Any]] = None

class AdminUserUpdate(ProfileUpdate):
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
    is_verified: Optional[bool] = None
