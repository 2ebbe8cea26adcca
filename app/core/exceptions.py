"""
Custom exception classes

Every failure mode of the auth core has its own class so callers can
branch on type instead of matching messages.
"""
from typing import Any, Optional


class ClinicException(Exception):
    """Base exception for the clinic application"""
    status_code: int = 400
    code: str = "bad_request"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Any] = None,
    ):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details
        # Set by the refresh endpoint so the error handler drops the dead cookie
        self.clear_refresh_cookie = False
        super().__init__(self.message)


class ValidationError(ClinicException):
    """Exception for malformed or missing input"""
    status_code = 400
    code = "validation_error"

    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, details=details)


class DuplicateEmailError(ClinicException):
    """Exception for registering an email that is already taken"""
    status_code = 400
    code = "duplicate_email"

    def __init__(self, message: str = "Email already registered"):
        super().__init__(message)


class InvalidCredentialsError(ClinicException):
    """Exception for a failed login; deliberately uninformative"""
    status_code = 401
    code = "invalid_credentials"

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class UnauthorizedError(ClinicException):
    """Exception for missing or unusable authentication"""
    status_code = 401
    code = "unauthorized"

    def __init__(self, message: str = "Not authorized to access this route"):
        super().__init__(message)


class TokenExpiredError(ClinicException):
    """Exception for a token past its expiry"""
    status_code = 401
    code = "token_expired"

    def __init__(self, message: str = "Token expired"):
        super().__init__(message)


class TokenInvalidError(ClinicException):
    """Exception for a token with a bad signature, format or type"""
    status_code = 401
    code = "token_invalid"

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class MissingTokenError(ClinicException):
    """Exception for a refresh request without a refresh token"""
    status_code = 401
    code = "missing_token"

    def __init__(self, message: str = "Refresh token is required"):
        super().__init__(message)


class InvalidRefreshTokenError(ClinicException):
    """Exception for a refresh token that is not the user's current one"""
    status_code = 401
    code = "invalid_refresh_token"

    def __init__(self, message: str = "Invalid refresh token"):
        super().__init__(message)


class AccountDeactivatedError(ClinicException):
    """Exception for a soft-disabled account"""
    status_code = 403
    code = "account_deactivated"

    def __init__(self, message: str = "Account is deactivated"):
        super().__init__(message)


class EmailNotVerifiedError(ClinicException):
    """Exception for logging in before the email address is verified"""
    status_code = 403
    code = "email_not_verified"

    def __init__(self, message: str = "Please verify your email before logging in"):
        super().__init__(message)


class ForbiddenError(ClinicException):
    """Exception for authorization failures"""
    status_code = 403
    code = "forbidden"

    def __init__(self, message: str = "Access forbidden", details: Optional[Any] = None):
        super().__init__(message, details=details)


class UserNotFoundError(ClinicException):
    """Exception for a user id that does not resolve"""
    status_code = 404
    code = "user_not_found"

    def __init__(self, message: str = "User not found"):
        super().__init__(message)


class InvalidOrExpiredTokenError(ClinicException):
    """Exception for a bad or stale email verification token"""
    status_code = 400
    code = "invalid_or_expired_token"

    def __init__(self, message: str = "Invalid or expired verification token"):
        super().__init__(message)


class RateLimitError(ClinicException):
    """Exception for rate limit exceeded"""
    status_code = 429
    code = "rate_limited"

    def __init__(self, message: str = "Rate limit exceeded", retry_after: Optional[int] = None):
        details = {"retryAfter": retry_after} if retry_after is not None else None
        super().__init__(message, details=details)


class EmailDeliveryFailedError(ClinicException):
    """Exception for a mail provider that rejected or never received a message"""
    status_code = 502
    code = "email_delivery_failed"

    def __init__(self, message: str = "Failed to send email"):
        super().__init__(message)


class ServiceUnavailableError(ClinicException):
    """Exception for transient store or network failures; safe to retry"""
    status_code = 503
    code = "service_unavailable"

    def __init__(self, message: str = "Service temporarily unavailable, please retry"):
        super().__init__(message)
