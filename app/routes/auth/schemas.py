# app/routes/auth/schemas.py

from pydantic import BaseModel, EmailStr, field_validator, Field
from typing import Optional

from app.models.all_models import UserRole
from app.schemas.user import UserResponse, validate_password_strength

SELF_SERVICE_ROLES = (UserRole.USER, UserRole.RADIOLOGIST)

# ================================
# REQUEST SCHEMAS
# ================================

class RegisterRequest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str
    role: UserRole = UserRole.USER
    specialization: Optional[str] = Field(None, max_length=100)
    license_number: Optional[str] = Field(None, max_length=50)
    institution: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=20)

    @field_validator('first_name', 'last_name')
    def strip_names(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Name cannot be empty')
        return v

    @field_validator('password')
    def validate_password(cls, v):
        return validate_password_strength(v)

    @field_validator('role')
    def validate_role(cls, v):
        if v not in SELF_SERVICE_ROLES:
            raise ValueError('Role must be user or radiologist')
        return v

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

class RefreshTokenRequest(BaseModel):
    refresh_token: Optional[str] = None

class ForgotPasswordRequest(BaseModel):
    email: EmailStr

class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    password: str

    @field_validator('password')
    def validate_password(cls, v):
        return validate_password_strength(v)

class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str

    @field_validator('new_password')
    def validate_password(cls, v):
        return validate_password_strength(v)

class VerifyEmailRequest(BaseModel):
    token: Optional[str] = None

# ================================
# RESPONSE SCHEMAS
# ================================

class AuthPayload(BaseModel):
    user: UserResponse
    token: str
    refresh_token: str

class TokenPair(BaseModel):
    token: str
    refresh_token: str
