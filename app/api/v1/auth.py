"""
Authentication API endpoints
"""
import logging
from typing import Optional
from fastapi import APIRouter, Cookie, Depends, Response, status

from app.config import settings
from app.core.exceptions import (
    AccountDeactivatedError,
    InvalidRefreshTokenError,
    MissingTokenError,
    TokenExpiredError,
    TokenInvalidError,
)
from app.dependencies import get_auth_service, get_current_user
from app.models.user import User
from app.schemas.auth import (
    AccessTokenResponse,
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    ResendVerificationRequest,
    UserEnvelope,
    UserResponse,
    VerifyEmailRequest,
)
from app.services.auth_service import AuthService
from app.utils.cookies import clear_refresh_cookie, set_refresh_cookie

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])

# Errors after which the presented refresh cookie can never succeed again
DEAD_REFRESH_TOKEN_ERRORS = (
    MissingTokenError,
    TokenExpiredError,
    TokenInvalidError,
    InvalidRefreshTokenError,
    AccountDeactivatedError,
)


@router.post("/register", response_model=UserEnvelope, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Register a new user

    - Creates the account (default role: patient)
    - Sends an email verification link when verification is required
    - Returns the user without credentials
    """
    user = await auth_service.register(data)

    message = "Registration successful"
    if not user.is_email_verified:
        message += ". Please check your email to verify your account."

    return UserEnvelope(message=message, user=UserResponse(**user.to_dict()))


@router.post("/login", response_model=LoginResponse)
async def login(
    data: LoginRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    User login

    - Returns the user and a short-lived access token
    - Sets the refresh token as an http-only cookie
    """
    user, tokens = await auth_service.login(data.email, data.password)

    set_refresh_cookie(response, tokens.refresh_token)

    return LoginResponse(
        message="Login successful",
        user=UserResponse(**user.to_dict()),
        access_token=tokens.access_token,
        expires_in=auth_service.tokens.access_expires_in,
    )


@router.post("/verify-email", response_model=UserEnvelope)
async def verify_email(
    data: VerifyEmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Verify an email address with the token from the verification email
    """
    user = await auth_service.verify_email(data.token)
    return UserEnvelope(message="Email verified successfully", user=UserResponse(**user.to_dict()))


@router.post("/resend-verification", response_model=MessageResponse)
async def resend_verification(
    data: ResendVerificationRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Re-send the verification email

    - Same response whether or not the address has a pending account
    """
    await auth_service.resend_verification(data.email)
    return MessageResponse(
        message="If an unverified account exists for this email, a verification link has been sent"
    )


@router.post("/refresh", response_model=AccessTokenResponse)
async def refresh_token(
    response: Response,
    refresh_token: Optional[str] = Cookie(None, alias=settings.REFRESH_COOKIE_NAME),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Rotate the session

    - Reads the refresh token from its cookie
    - Returns a new access token and replaces the cookie
    - The presented refresh token stops working immediately
    """
    try:
        tokens = await auth_service.refresh(refresh_token)
    except DEAD_REFRESH_TOKEN_ERRORS as e:
        logger.info(f"Refresh rejected ({e.code}); clearing refresh cookie")
        e.clear_refresh_cookie = True
        raise

    set_refresh_cookie(response, tokens.refresh_token)

    return AccessTokenResponse(
        message="Token refreshed successfully",
        access_token=tokens.access_token,
        expires_in=auth_service.tokens.access_expires_in,
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    current_user: User = Depends(get_current_user),
    refresh_token: Optional[str] = Cookie(None, alias=settings.REFRESH_COOKIE_NAME),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Logout user

    - Requires authentication
    - Revokes the refresh token from the cookie, if it is the current one
    - Safe to call repeatedly
    """
    await auth_service.logout(str(current_user.id), refresh_token)
    clear_refresh_cookie(response)
    return MessageResponse(message="Logout successful")


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    data: ChangePasswordRequest,
    response: Response,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Change user password

    - Requires authentication
    - Ends every session; the user logs in again with the new password
    """
    await auth_service.change_password(str(current_user.id), data.old_password, data.new_password)
    clear_refresh_cookie(response)
    return MessageResponse(message="Password changed successfully. Please log in again.")


@router.get("/me", response_model=UserEnvelope)
async def get_current_user_info(
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Get current user information

    - Requires authentication
    """
    user = await auth_service.get_current_user(str(current_user.id))
    return UserEnvelope(message="User retrieved successfully", user=UserResponse(**user.to_dict()))
