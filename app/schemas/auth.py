"""
Pydantic schemas for authentication endpoints
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models.user import UserRole


class CamelModel(BaseModel):
    """Base schema: snake_case in Python, camelCase on the wire"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _strip_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("must not be blank")
    return v


class RegisterRequest(CamelModel):
    """Request schema for user registration"""
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    role: Optional[UserRole] = None

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_names(cls, v):
        return _strip_name(v)


class LoginRequest(CamelModel):
    """Request schema for user login"""
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class VerifyEmailRequest(CamelModel):
    """Request schema for email verification"""
    token: str = Field(..., min_length=1, max_length=256)


class ResendVerificationRequest(CamelModel):
    """Request schema for re-sending the verification email"""
    email: EmailStr


class ChangePasswordRequest(CamelModel):
    """Request schema for changing password"""
    old_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=1, max_length=128)


# Response Schemas

class UserResponse(CamelModel):
    """Response schema for user data"""
    id: str
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    role: str
    is_active: bool
    is_email_verified: bool
    verification_status: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    last_login: Optional[str] = None


class MessageResponse(CamelModel):
    """Generic message response"""
    success: bool = True
    message: str


class UserEnvelope(MessageResponse):
    """Response schema carrying one user"""
    user: UserResponse


class LoginResponse(MessageResponse):
    """Response schema for successful login; the refresh token travels in a cookie"""
    user: UserResponse
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class AccessTokenResponse(MessageResponse):
    """Response schema for a rotated session"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
