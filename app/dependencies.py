"""
FastAPI dependencies for dependency injection and access control

Protected routes chain these in order: ``get_current_user`` authenticates,
then ``authorize(...)``, ``require_verified_email`` and
``require_doctor_approval`` each pass or raise. FastAPI resolves
``get_current_user`` once per request, so the chain loads the user once.
"""
from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, utc_now
from app.core.exceptions import ForbiddenError, UnauthorizedError
from app.core.security import TokenService
from app.database import get_db
from app.models.user import User, UserRole, VerificationStatus
from app.services.auth_service import AuthService
from app.services.email_service import EmailService, get_email_service
from app.services.user_service import UserService
from app.services.user_store import UserStore
from app.services.verification_throttle import VerificationThrottle, get_verification_throttle

# HTTP Bearer token authentication; missing headers are reported by get_current_user
security = HTTPBearer(auto_error=False)


def get_clock() -> Clock:
    """Dependency for the wall clock"""
    return utc_now


def get_token_service(clock: Clock = Depends(get_clock)) -> TokenService:
    return TokenService.from_settings(clock=clock)


def get_user_store(db: AsyncSession = Depends(get_db)) -> UserStore:
    return UserStore(db)


def get_auth_service(
    store: UserStore = Depends(get_user_store),
    token_service: TokenService = Depends(get_token_service),
    email_service: EmailService = Depends(get_email_service),
    throttle: VerificationThrottle = Depends(get_verification_throttle),
    clock: Clock = Depends(get_clock),
) -> AuthService:
    return AuthService(store, token_service, email_service, throttle=throttle, clock=clock)


def get_user_service(store: UserStore = Depends(get_user_store)) -> UserService:
    return UserService(store)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    token_service: TokenService = Depends(get_token_service),
    store: UserStore = Depends(get_user_store),
) -> User:
    """
    Dependency to get the current authenticated user from the access token

    The user is also attached to ``request.state.user``.

    Raises:
        UnauthorizedError: 401 if the header is missing/malformed or the user is gone
        TokenExpiredError / TokenInvalidError: 401 if the token fails verification
        ForbiddenError: 403 if the account is deactivated
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError()

    payload = token_service.verify_access_token(credentials.credentials)

    user = await store.find_by_id(payload.id)
    if user is None:
        raise UnauthorizedError("User no longer exists")

    if not user.is_active:
        raise ForbiddenError("Account is deactivated")

    request.state.user = user
    return user


def authorize(*roles: UserRole) -> Callable:
    """
    Build a dependency that admits only the given roles

    The role set is fixed when the route is declared.
    """
    allowed = frozenset(UserRole(role) for role in roles)

    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise ForbiddenError(
                f"User role '{current_user.role.value}' is not authorized to access this route"
            )
        return current_user

    return role_checker


async def require_verified_email(current_user: User = Depends(get_current_user)) -> User:
    """
    Raises:
        ForbiddenError: 403 if the user's email is not verified
    """
    if not current_user.is_email_verified:
        raise ForbiddenError("Please verify your email to access this resource")
    return current_user


async def require_doctor_approval(current_user: User = Depends(get_current_user)) -> User:
    """
    Doctors must be approved; every other role passes unchanged

    Raises:
        ForbiddenError: 403 if the user is a doctor whose verification is not approved
    """
    if current_user.role == UserRole.DOCTOR and current_user.verification_status != VerificationStatus.APPROVED:
        status = current_user.verification_status.value if current_user.verification_status else None
        raise ForbiddenError(
            "Your doctor profile is not verified yet",
            details={"verificationStatus": status},
        )
    return current_user
