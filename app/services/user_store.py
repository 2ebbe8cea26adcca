"""
Credential store: point reads and point writes on the users table
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Dict, List, Optional, Tuple, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import DuplicateEmailError, ServiceUnavailableError
from app.models.user import User

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Columns a point update may touch; id, email uniqueness and created_at stay put
UPDATABLE_COLUMNS = frozenset({
    "email",
    "password_hash",
    "first_name",
    "last_name",
    "phone",
    "is_active",
    "is_email_verified",
    "verification_status",
    "current_refresh_token",
    "email_verification_token",
    "email_verification_expires",
    "last_login",
})


def normalize_email(email: str) -> str:
    """Emails are unique case-insensitively, so they are stored lower-cased"""
    return email.strip().lower()


class UserStore:
    """
    Async access to user records

    Every call is bounded by ``DB_OPERATION_TIMEOUT_SECONDS``; timeouts and
    connectivity failures surface as ``ServiceUnavailableError`` so callers
    never mistake infrastructure trouble for an authentication failure.
    """

    def __init__(self, db: AsyncSession, timeout: Optional[float] = None):
        self.db = db
        self.timeout = timeout if timeout is not None else settings.DB_OPERATION_TIMEOUT_SECONDS

    async def _run(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"User store operation timed out: {operation} (>{self.timeout}s)")
            await self._rollback_quietly()
            raise ServiceUnavailableError()
        except (OperationalError, InterfaceError) as e:
            logger.error(f"User store operation failed: {operation}: {e}")
            await self._rollback_quietly()
            raise ServiceUnavailableError()

    async def _rollback_quietly(self):
        try:
            await self.db.rollback()
        except Exception as e:
            logger.warning(f"Rollback after store failure also failed: {e}")

    async def _fetch_one(self, statement) -> Optional[User]:
        result = await self.db.execute(statement.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    async def find_by_id(self, user_id: str) -> Optional[User]:
        return await self._run(
            "find_by_id",
            self._fetch_one(select(User).where(User.id == str(user_id))),
        )

    async def find_by_email(self, email: str) -> Optional[User]:
        return await self._run(
            "find_by_email",
            self._fetch_one(select(User).where(User.email == normalize_email(email))),
        )

    async def find_by_verification_token(self, token_hash: str, now: datetime) -> Optional[User]:
        """Find the user holding this verification hash, if it has not expired"""
        return await self._run(
            "find_by_verification_token",
            self._fetch_one(
                select(User).where(
                    User.email_verification_token == token_hash,
                    User.email_verification_expires > now,
                )
            ),
        )

    async def list_users(self, skip: int = 0, limit: int = 20) -> Tuple[List[User], int]:
        async def _list():
            total = (await self.db.execute(select(func.count()).select_from(User))).scalar()
            result = await self.db.execute(
                select(User).order_by(User.created_at.desc()).offset(skip).limit(limit)
            )
            return list(result.scalars().all()), total

        return await self._run("list_users", _list())

    async def create(self, **fields: Any) -> User:
        """
        Insert a new user

        Raises:
            DuplicateEmailError: If the email is already taken (including a lost race)
        """
        fields["email"] = normalize_email(fields["email"])

        async def _create():
            user = User(**fields)
            self.db.add(user)
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                raise DuplicateEmailError()
            await self.db.refresh(user)
            return user

        return await self._run("create", _create())

    async def update_by_id(self, user_id: str, patch: Dict[str, Any]) -> Optional[User]:
        """
        Apply a point update and return the fresh record (None if the id is unknown)

        Raises:
            ValueError: If the patch names a column outside UPDATABLE_COLUMNS
            DuplicateEmailError: If an email change collides with another account
        """
        unknown = set(patch) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Columns not updatable: {', '.join(sorted(unknown))}")
        if "email" in patch:
            patch = {**patch, "email": normalize_email(patch["email"])}

        async def _update():
            try:
                result = await self.db.execute(
                    update(User)
                    .where(User.id == str(user_id))
                    .values(**patch)
                    .execution_options(synchronize_session=False)
                )
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                raise DuplicateEmailError()
            if result.rowcount == 0:
                return None
            return await self._fetch_one(select(User).where(User.id == str(user_id)))

        return await self._run("update_by_id", _update())

    async def swap_refresh_token(self, user_id: str, expected: str, replacement: Optional[str]) -> bool:
        """
        Compare-and-set on the stored refresh token

        The row only changes if it still holds ``expected`` and is active, so of
        two concurrent rotations presenting the same token exactly one wins.

        Returns:
            True if this call replaced the token
        """
        async def _swap():
            result = await self.db.execute(
                update(User)
                .where(
                    User.id == str(user_id),
                    User.current_refresh_token == expected,
                    User.is_active.is_(True),
                )
                .values(current_refresh_token=replacement)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
            return result.rowcount == 1

        return await self._run("swap_refresh_token", _swap())

    async def clear_refresh_token(self, user_id: str, expected: str) -> bool:
        """Drop the stored refresh token if it is still ``expected``"""

        async def _clear():
            result = await self.db.execute(
                update(User)
                .where(User.id == str(user_id), User.current_refresh_token == expected)
                .values(current_refresh_token=None)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
            return result.rowcount == 1

        return await self._run("clear_refresh_token", _clear())
