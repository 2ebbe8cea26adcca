"""
Authentication service for registration, login, session rotation and email verification
"""
import asyncio
import logging
from datetime import timedelta
from typing import Optional, Tuple

from app.config import settings
from app.core.clock import Clock, utc_now
from app.core.exceptions import (
    AccountDeactivatedError,
    DuplicateEmailError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    InvalidRefreshTokenError,
    MissingTokenError,
    UserNotFoundError,
    ValidationError,
)
from app.core.security import (
    TokenPair,
    TokenPayload,
    TokenService,
    burn_password_check,
    generate_verification_token,
    hash_password,
    hash_token,
    validate_password_strength,
    verify_password,
)
from app.models.user import (
    DEFAULT_REGISTRATION_ROLE,
    SELF_REGISTRATION_ROLES,
    User,
    UserRole,
    VerificationStatus,
)
from app.schemas.auth import RegisterRequest
from app.services.email_service import EmailService
from app.services.user_store import UserStore, normalize_email
from app.services.verification_throttle import VerificationThrottle

logger = logging.getLogger(__name__)


class AuthService:
    """
    Service for authentication operations

    A session moves Anonymous -> Authenticated -> (Refreshed)* -> LoggedOut.
    Each user holds at most one live refresh token: login overwrites it,
    refresh swaps it atomically, logout clears it.
    """

    def __init__(
        self,
        store: UserStore,
        token_service: TokenService,
        email_service: EmailService,
        throttle: Optional[VerificationThrottle] = None,
        clock: Clock = utc_now,
        require_email_verification: Optional[bool] = None,
    ):
        self.store = store
        self.tokens = token_service
        self.email_service = email_service
        self.throttle = throttle
        self.clock = clock
        if require_email_verification is None:
            require_email_verification = settings.REQUIRE_EMAIL_VERIFICATION
        self.require_email_verification = require_email_verification

    @staticmethod
    def _payload(user: User) -> TokenPayload:
        return TokenPayload(id=str(user.id), email=user.email, role=user.role.value)

    def _new_verification_fields(self) -> Tuple[str, dict]:
        raw_token = generate_verification_token()
        fields = {
            "email_verification_token": hash_token(raw_token),
            "email_verification_expires": self.clock() + timedelta(hours=settings.EMAIL_VERIFICATION_EXPIRE_HOURS),
        }
        return raw_token, fields

    async def register(self, data: RegisterRequest) -> User:
        """
        Register a new user

        Args:
            data: Registration data

        Returns:
            The created user

        Raises:
            ValidationError: If the password is too weak or the role cannot be self-assigned
            DuplicateEmailError: If the email already exists
            EmailDeliveryFailedError: If the verification email cannot be sent
        """
        logger.info("🔐 [AUTH SERVICE] Starting user registration...")

        role = data.role or DEFAULT_REGISTRATION_ROLE
        if role not in SELF_REGISTRATION_ROLES:
            logger.warning(f"❌ [VALIDATION] Self-registration as {role.value} refused")
            raise ValidationError(
                f"Role '{role.value}' cannot be chosen at registration",
                details={"field": "role", "allowed": sorted(r.value for r in SELF_REGISTRATION_ROLES)},
            )

        is_valid, error_msg = validate_password_strength(data.password)
        if not is_valid:
            logger.warning(f"❌ [VALIDATION] Password rejected: {error_msg}")
            raise ValidationError(error_msg)

        email = normalize_email(data.email)
        if await self.store.find_by_email(email):
            logger.warning("❌ [DUPLICATE CHECK] Email already registered")
            raise DuplicateEmailError()

        fields = {
            "email": email,
            "password_hash": await asyncio.to_thread(hash_password, data.password),
            "first_name": data.first_name,
            "last_name": data.last_name,
            "phone": data.phone,
            "role": role,
            "is_active": True,
            "is_email_verified": not self.require_email_verification,
            "verification_status": VerificationStatus.PENDING if role == UserRole.DOCTOR else None,
        }

        raw_token = None
        if self.require_email_verification:
            raw_token, verification_fields = self._new_verification_fields()
            fields.update(verification_fields)

        user = await self.store.create(**fields)
        logger.info(f"✅ [DATABASE] User created with ID: {user.id} (role {role.value})")

        if raw_token:
            await self.email_service.send_verification_email(user.email, raw_token, user.first_name)
            logger.info("✅ [EMAIL] Verification email dispatched")

        return user

    async def login(self, email: str, password: str) -> Tuple[User, TokenPair]:
        """
        Authenticate user and start a session

        Unknown email and wrong password are indistinguishable. Account state
        is only disclosed once the password has matched.

        Returns:
            Tuple of (user, tokens)

        Raises:
            InvalidCredentialsError: If the email is unknown or the password is wrong
            AccountDeactivatedError: If the account is disabled
            EmailNotVerifiedError: If verification is required and pending
        """
        logger.info("🔓 [AUTH SERVICE] Starting login...")

        user = await self.store.find_by_email(email)
        if user is None:
            await asyncio.to_thread(burn_password_check, password)
            logger.warning("❌ [LOGIN] Rejected: invalid credentials")
            raise InvalidCredentialsError()

        if not await asyncio.to_thread(verify_password, password, user.password_hash):
            logger.warning(f"❌ [LOGIN] Rejected: invalid credentials for user {user.id}")
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.warning(f"❌ [LOGIN] Rejected: user {user.id} is deactivated")
            raise AccountDeactivatedError()

        if self.require_email_verification and not user.is_email_verified:
            logger.warning(f"❌ [LOGIN] Rejected: user {user.id} has not verified email")
            raise EmailNotVerifiedError()

        tokens = self.tokens.issue_token_pair(self._payload(user))

        # Overwriting the stored token ends any other session
        user = await self.store.update_by_id(
            user.id,
            {"current_refresh_token": tokens.refresh_token, "last_login": self.clock()},
        )
        if user is None:
            raise InvalidCredentialsError()

        logger.info(f"✅ [AUTH SERVICE] User logged in: {user.id} ({user.role.value})")
        return user, tokens

    async def verify_email(self, token: str) -> User:
        """
        Consume an email verification token

        Raises:
            InvalidOrExpiredTokenError: If no unexpired token matches
        """
        if not token:
            raise InvalidOrExpiredTokenError()

        user = await self.store.find_by_verification_token(hash_token(token), self.clock())
        if user is None:
            logger.warning("❌ [VERIFY EMAIL] Unknown or expired token")
            raise InvalidOrExpiredTokenError()

        user = await self.store.update_by_id(
            user.id,
            {
                "is_email_verified": True,
                "email_verification_token": None,
                "email_verification_expires": None,
            },
        )
        if user is None:
            raise InvalidOrExpiredTokenError()

        logger.info(f"✅ [VERIFY EMAIL] User verified: {user.id}")
        return user

    async def resend_verification(self, email: str):
        """
        Issue a fresh verification token for a pending account

        Unknown, inactive and already-verified addresses are a silent no-op,
        so the response never reveals whether an account exists.

        Raises:
            RateLimitError: If the address was mailed too recently or too often
        """
        email = normalize_email(email)
        if self.throttle is not None:
            await self.throttle.check_and_mark(email)

        user = await self.store.find_by_email(email)
        if user is None or not user.is_active or user.is_email_verified:
            logger.info("Verification resend skipped: no pending account for address")
            return

        raw_token, verification_fields = self._new_verification_fields()
        await self.store.update_by_id(user.id, verification_fields)
        await self.email_service.send_verification_email(user.email, raw_token, user.first_name)
        logger.info(f"Verification email re-sent for user {user.id}")

    async def refresh(self, old_refresh_token: Optional[str]) -> TokenPair:
        """
        Rotate a session: trade the current refresh token for a new pair

        Returns:
            New token pair

        Raises:
            MissingTokenError: If no token was presented
            TokenExpiredError / TokenInvalidError: If the token fails verification
            InvalidRefreshTokenError: If the token is not the user's current one
            AccountDeactivatedError: If the account is disabled
        """
        if not old_refresh_token:
            raise MissingTokenError()

        payload = self.tokens.verify_refresh_token(old_refresh_token)

        user = await self.store.find_by_id(payload.id)
        if user is None:
            raise InvalidRefreshTokenError()

        # Account state is only disclosed to the holder of the current token
        if user.current_refresh_token != old_refresh_token:
            # A rotated-out token coming back suggests it was copied
            logger.warning(f"❌ [REFRESH] Stale or reused refresh token for user {user.id}")
            raise InvalidRefreshTokenError()

        if not user.is_active:
            logger.warning(f"❌ [REFRESH] Rejected: user {user.id} is deactivated")
            raise AccountDeactivatedError()

        tokens = self.tokens.issue_token_pair(self._payload(user))

        if not await self.store.swap_refresh_token(user.id, old_refresh_token, tokens.refresh_token):
            logger.warning(f"❌ [REFRESH] Lost rotation race for user {user.id}")
            raise InvalidRefreshTokenError()

        logger.info(f"Tokens refreshed for user: {user.id}")
        return tokens

    async def logout(self, user_id: str, refresh_token: Optional[str]):
        """
        End a session; idempotent

        The stored token is cleared only if it is the one presented, so a
        stale cookie cannot log out a newer session.
        """
        if not refresh_token:
            logger.info(f"Logout without refresh token for user {user_id}")
            return

        cleared = await self.store.clear_refresh_token(user_id, refresh_token)
        logger.info(f"Logout for user {user_id} ({'session cleared' if cleared else 'no active session'})")

    async def get_current_user(self, user_id: str) -> User:
        """
        Raises:
            UserNotFoundError: If the user does not exist
        """
        user = await self.store.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    async def change_password(self, user_id: str, old_password: str, new_password: str):
        """
        Change user password and end every session

        Raises:
            UserNotFoundError: If the user does not exist
            InvalidCredentialsError: If old password is invalid
            ValidationError: If new password is weak
        """
        user = await self.get_current_user(user_id)

        if not await asyncio.to_thread(verify_password, old_password, user.password_hash):
            raise InvalidCredentialsError("Invalid current password")

        is_valid, error_msg = validate_password_strength(new_password)
        if not is_valid:
            raise ValidationError(error_msg)

        await self.store.update_by_id(
            user.id,
            {
                "password_hash": await asyncio.to_thread(hash_password, new_password),
                "current_refresh_token": None,
            },
        )
        logger.info(f"Password changed for user: {user.id}")
