"""
Pydantic schemas for user administration endpoints
"""
from typing import List, Optional
from pydantic import EmailStr, Field, field_validator

from app.models.user import VerificationStatus
from app.schemas.auth import CamelModel, MessageResponse, UserResponse


class UserUpdate(CamelModel):
    """Allow-listed profile patch; fields left unset are not touched"""
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_names(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class VerificationStatusUpdate(CamelModel):
    """Admin decision on a doctor's credentials"""
    verification_status: VerificationStatus


class UserListResponse(MessageResponse):
    """Response schema for a page of users"""
    users: List[UserResponse]
    total: int
    skip: int
    limit: int
