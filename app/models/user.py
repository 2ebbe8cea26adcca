"""
User model for authentication and authorization
"""
from datetime import datetime
from sqlalchemy import Column, String, Text, Boolean, DateTime, Enum as SQLEnum
import uuid
import enum

from app.database import Base
from app.core.clock import utc_now


class UserRole(str, enum.Enum):
    """User role enumeration"""
    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"


class VerificationStatus(str, enum.Enum):
    """Doctor verification status enumeration"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# Single documented default; registration never depends on the environment for this
DEFAULT_REGISTRATION_ROLE = UserRole.PATIENT

# Admins are provisioned out of band, never through public sign-up
SELF_REGISTRATION_ROLES = frozenset({UserRole.PATIENT, UserRole.DOCTOR})


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    User model for authentication

    Stores credentials, role and session state for every account type.
    Rows are never hard-deleted; ``is_active`` is the soft-disable switch.
    """
    __tablename__ = "users"

    # Primary key
    id = Column(String(36), primary_key=True, default=_new_id, index=True)

    # Authentication fields
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=True)  # null for federated sign-in

    # User details
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(30), nullable=True)
    role = Column(SQLEnum(UserRole), nullable=False, default=DEFAULT_REGISTRATION_ROLE)

    # Status
    is_active = Column(Boolean, default=True, nullable=False)
    is_email_verified = Column(Boolean, default=False, nullable=False)
    verification_status = Column(SQLEnum(VerificationStatus), nullable=True)  # doctors only

    # Session state
    current_refresh_token = Column(Text, nullable=True)

    # Email verification (hash of the mailed token)
    email_verification_token = Column(String(64), nullable=True, index=True)
    email_verification_expires = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)
    last_login = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"

    def to_dict(self):
        """Convert model to dictionary without credentials or tokens"""
        return {
            "id": str(self.id),
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "role": self.role.value,
            "is_active": self.is_active,
            "is_email_verified": self.is_email_verified,
            "verification_status": self.verification_status.value if self.verification_status else None,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "last_login": _iso(self.last_login),
        }


def _iso(value: datetime):
    return value.isoformat() if value else None
