"""
Database models
"""
from app.models.user import User, UserRole, VerificationStatus, DEFAULT_REGISTRATION_ROLE

__all__ = [
    "User",
    "UserRole",
    "VerificationStatus",
    "DEFAULT_REGISTRATION_ROLE",
]
