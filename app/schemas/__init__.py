"""
Pydantic schemas for API validation and serialization
"""
from app.schemas.auth import (
    CamelModel,
    RegisterRequest,
    LoginRequest,
    VerifyEmailRequest,
    ResendVerificationRequest,
    ChangePasswordRequest,
    UserResponse,
    MessageResponse,
    UserEnvelope,
    LoginResponse,
    AccessTokenResponse,
)

from app.schemas.user import (
    UserUpdate,
    VerificationStatusUpdate,
    UserListResponse,
)

__all__ = [
    # Auth
    "CamelModel",
    "RegisterRequest",
    "LoginRequest",
    "VerifyEmailRequest",
    "ResendVerificationRequest",
    "ChangePasswordRequest",
    "UserResponse",
    "MessageResponse",
    "UserEnvelope",
    "LoginResponse",
    "AccessTokenResponse",
    # User administration
    "UserUpdate",
    "VerificationStatusUpdate",
    "UserListResponse",
]
