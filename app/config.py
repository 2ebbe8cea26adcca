"""
Application configuration using Pydantic Settings
"""
from typing import List
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "Alamany Dental Clinic API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///./clinic_dev.db", description="Database connection string")
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10
    DB_OPERATION_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)

    # Redis
    REDIS_URL: str = Field(default="redis://localhost:6379/0")
    REDIS_THROTTLE_DB: int = 1

    # JWT Configuration
    JWT_ACCESS_SECRET: str = Field(default="development-access-secret-please-change-in-production", min_length=32, description="Secret key for access token signing")
    JWT_REFRESH_SECRET: str = Field(default="development-refresh-secret-please-change-in-production", min_length=32, description="Secret key for refresh token signing")
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    JWT_REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Security
    PASSWORD_MIN_LENGTH: int = 6
    BCRYPT_ROUNDS: int = Field(default=12, ge=4, le=31)

    # Email verification
    REQUIRE_EMAIL_VERIFICATION: bool = True
    EMAIL_VERIFICATION_EXPIRE_HOURS: int = 24
    VERIFICATION_RESEND_COOLDOWN_SECONDS: int = 60
    VERIFICATION_RATE_LIMIT_PER_HOUR: int = 5

    # Cookies
    REFRESH_COOKIE_NAME: str = "refreshToken"

    # CORS Settings
    CORS_ORIGINS: str = "http://localhost:4200,http://localhost:3000"

    # Email Configuration (SendGrid)
    SENDGRID_API_KEY: str = ""
    SENDGRID_API_URL: str = "https://api.sendgrid.com/v3/mail/send"
    SENDGRID_FROM_EMAIL: str = "noreply@alamany-dental.clinic"
    SENDGRID_FROM_NAME: str = "Alamany Dental Clinic"
    SENDGRID_VERIFICATION_TEMPLATE_ID: str = ""
    SENDGRID_TIMEOUT_SECONDS: float = 10.0
    FRONTEND_URL: str = "http://localhost:4200"

    # Logging
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @model_validator(mode="after")
    def check_secrets_differ(self):
        # A leaked access secret must not be able to mint refresh tokens
        if self.JWT_ACCESS_SECRET == self.JWT_REFRESH_SECRET:
            raise ValueError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must be different")
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as list"""
        origins = [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]
        # Handle wildcard for development
        if "*" in origins:
            return ["*"]
        return origins

    @property
    def redis_throttle_url(self) -> str:
        """Get Redis URL for the verification throttle database"""
        return self.REDIS_URL.rsplit("/", 1)[0] + f"/{self.REDIS_THROTTLE_DB}"

    @property
    def refresh_cookie_max_age(self) -> int:
        """Refresh cookie lifetime in seconds, matching the refresh token"""
        return self.JWT_REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60


# Global settings instance
settings = Settings()
