"""
Security utilities: password hashing, JWT issuing/verification, one-time tokens
"""
import calendar
import hashlib
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Optional, Dict, Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.config import settings
from app.core.clock import Clock, utc_now
from app.core.exceptions import TokenExpiredError, TokenInvalidError

# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

# bcrypt silently ignores everything past 72 bytes
PASSWORD_MAX_BYTES = 72

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt

    Args:
        password: Plain text password

    Returns:
        Hashed password
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """
    Verify a password against its hash

    Accounts without a local password (federated sign-in) never match, but
    still pay for one bcrypt check so they time like a wrong password.

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password to compare against

    Returns:
        True if password matches, False otherwise
    """
    if not hashed_password:
        burn_password_check(plain_password)
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


@lru_cache(maxsize=1)
def _dummy_password_hash() -> str:
    return pwd_context.hash(secrets.token_urlsafe(16))


def burn_password_check(plain_password: str) -> None:
    """Spend the same bcrypt work as a real check so unknown emails take as long as wrong passwords"""
    pwd_context.verify(plain_password, _dummy_password_hash())


def validate_password_strength(password: str) -> tuple[bool, Optional[str]]:
    """
    Validate password strength

    Requirements:
    - Minimum length from settings
    - At most 72 bytes once encoded (bcrypt limit)

    Args:
        password: Password to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        return False, f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters"

    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        return False, f"Password must be at most {PASSWORD_MAX_BYTES} bytes"

    return True, None


def generate_verification_token() -> str:
    """Generate a random 256-bit single-use token"""
    return secrets.token_hex(32)


def hash_token(raw_token: str) -> str:
    """One-way hash of a single-use token; only the hash is persisted"""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def _timestamp(moment: datetime) -> int:
    return calendar.timegm(moment.utctimetuple())


@dataclass(frozen=True)
class TokenPayload:
    """Minimal identity carried by both token classes"""
    id: str
    email: str
    role: str


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class TokenService:
    """
    Issues and verifies access and refresh JWTs

    Access and refresh tokens are signed with independent secrets, so a
    leaked access secret cannot mint refresh tokens. Issuing is stateless;
    a refresh token only becomes a live session once the auth service
    stores it on the user record.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_lifetime: timedelta = timedelta(minutes=15),
        refresh_lifetime: timedelta = timedelta(days=7),
        clock: Clock = utc_now,
    ):
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.algorithm = algorithm
        self.access_lifetime = access_lifetime
        self.refresh_lifetime = refresh_lifetime
        self.clock = clock

    @classmethod
    def from_settings(cls, clock: Clock = utc_now) -> "TokenService":
        return cls(
            access_secret=settings.JWT_ACCESS_SECRET,
            refresh_secret=settings.JWT_REFRESH_SECRET,
            algorithm=settings.JWT_ALGORITHM,
            access_lifetime=timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_lifetime=timedelta(days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS),
            clock=clock,
        )

    @property
    def access_expires_in(self) -> int:
        """Access token lifetime in seconds"""
        return int(self.access_lifetime.total_seconds())

    def _encode(self, payload: TokenPayload, secret: str, lifetime: timedelta, token_type: str) -> str:
        now = self.clock()
        claims: Dict[str, Any] = {
            "sub": str(payload.id),
            "email": payload.email,
            "role": payload.role,
            "type": token_type,
            "iat": _timestamp(now),
            "exp": _timestamp(now + lifetime),
            # Unique per token so two issued in the same second still differ
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(claims, secret, algorithm=self.algorithm)

    def _decode(self, token: str, secret: str, token_type: str, label: str) -> TokenPayload:
        if not token or not isinstance(token, str):
            raise TokenInvalidError(f"Invalid {label} token")

        try:
            # Expiry is checked below against the injected clock
            claims = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError:
            raise TokenInvalidError(f"Invalid {label} token")

        if claims.get("type") != token_type:
            raise TokenInvalidError(f"Invalid {label} token")

        exp = claims.get("exp")
        if not isinstance(exp, int):
            raise TokenInvalidError(f"Invalid {label} token")
        if exp <= _timestamp(self.clock()):
            raise TokenExpiredError(f"{label.capitalize()} token expired")

        user_id = claims.get("sub")
        email = claims.get("email")
        role = claims.get("role")
        if not user_id or not email or not role:
            raise TokenInvalidError(f"Invalid {label} token")

        return TokenPayload(id=user_id, email=email, role=role)

    def issue_access_token(self, payload: TokenPayload) -> str:
        return self._encode(payload, self.access_secret, self.access_lifetime, ACCESS_TOKEN_TYPE)

    def issue_refresh_token(self, payload: TokenPayload) -> str:
        return self._encode(payload, self.refresh_secret, self.refresh_lifetime, REFRESH_TOKEN_TYPE)

    def issue_token_pair(self, payload: TokenPayload) -> TokenPair:
        return TokenPair(
            access_token=self.issue_access_token(payload),
            refresh_token=self.issue_refresh_token(payload),
        )

    def verify_access_token(self, token: str) -> TokenPayload:
        """
        Decode and validate an access token

        Raises:
            TokenExpiredError: If the token is past its expiry
            TokenInvalidError: If the signature, format or type is wrong
        """
        return self._decode(token, self.access_secret, ACCESS_TOKEN_TYPE, "access")

    def verify_refresh_token(self, token: str) -> TokenPayload:
        """
        Decode and validate a refresh token

        Raises:
            TokenExpiredError: If the token is past its expiry
            TokenInvalidError: If the signature, format or type is wrong
        """
        return self._decode(token, self.refresh_secret, REFRESH_TOKEN_TYPE, "refresh")
