"""
User administration service: listing, profile patches, deactivation, doctor approval
"""
import logging
from typing import List, Tuple

from app.core.exceptions import (
    DuplicateEmailError,
    ForbiddenError,
    UserNotFoundError,
    ValidationError,
)
from app.models.user import User, UserRole, VerificationStatus
from app.schemas.user import UserUpdate
from app.services.user_store import UserStore, normalize_email

logger = logging.getLogger(__name__)

# Fields a profile patch may carry; role and status have dedicated paths
ALLOWED_UPDATE_FIELDS = ("email", "first_name", "last_name", "phone")
REQUIRED_FIELDS = ("email", "first_name", "last_name")


class UserService:
    """Service for user administration operations"""

    def __init__(self, store: UserStore):
        self.store = store

    async def list_users(self, skip: int = 0, limit: int = 20) -> Tuple[List[User], int]:
        return await self.store.list_users(skip=skip, limit=limit)

    async def get_user(self, user_id: str) -> User:
        user = await self.store.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    async def update_user(self, actor: User, user_id: str, data: UserUpdate) -> Tuple[User, bool]:
        """
        Apply an allow-listed profile patch

        Users may edit themselves; admins may edit anyone. Changing the email
        marks the account unverified again.

        Returns:
            Tuple of (updated user, whether the email changed)

        Raises:
            ForbiddenError: If a non-admin edits someone else
            ValidationError: If the patch is empty or blanks a required field
            DuplicateEmailError: If the new email belongs to another account
            UserNotFoundError: If the user does not exist
        """
        if actor.role != UserRole.ADMIN and str(actor.id) != str(user_id):
            raise ForbiddenError("You can only update your own profile")

        patch = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if field in ALLOWED_UPDATE_FIELDS
        }
        if not patch:
            raise ValidationError("No updatable fields provided")

        blanked = [field for field in REQUIRED_FIELDS if field in patch and patch[field] is None]
        if blanked:
            raise ValidationError(f"Fields cannot be empty: {', '.join(blanked)}")

        user = await self.get_user(user_id)

        email_changed = False
        if "email" in patch:
            new_email = normalize_email(patch["email"])
            if new_email == user.email:
                del patch["email"]
            else:
                existing = await self.store.find_by_email(new_email)
                if existing is not None:
                    raise DuplicateEmailError("Email already exists")
                patch["email"] = new_email
                patch["is_email_verified"] = False
                patch["email_verification_token"] = None
                patch["email_verification_expires"] = None
                email_changed = True

        if not patch:
            return user, False

        updated = await self.store.update_by_id(user.id, patch)
        if updated is None:
            raise UserNotFoundError()

        logger.info(f"User {updated.id} updated by {actor.id}: {sorted(patch)}")
        return updated, email_changed

    async def deactivate_user(self, user_id: str) -> User:
        """
        Soft delete: the record stays, every future login and refresh fails

        Raises:
            UserNotFoundError: If the user does not exist
        """
        user = await self.store.update_by_id(user_id, {"is_active": False})
        if user is None:
            raise UserNotFoundError()
        logger.info(f"User deactivated: {user.id}")
        return user

    async def set_verification_status(self, user_id: str, status: VerificationStatus) -> User:
        """
        Record an admin decision on a doctor's credentials

        Raises:
            UserNotFoundError: If the user does not exist
            ValidationError: If the user is not a doctor
        """
        user = await self.get_user(user_id)
        if user.role != UserRole.DOCTOR:
            raise ValidationError("Only doctor accounts have a verification status")

        user = await self.store.update_by_id(user.id, {"verification_status": status})
        if user is None:
            raise UserNotFoundError()
        logger.info(f"Doctor {user.id} verification status set to {status.value}")
        return user
