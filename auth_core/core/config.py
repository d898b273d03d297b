from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, ValidationError, ValidationInfo, field_validator, model_validator
from typing import List, Optional, Any
import sys
from functools import lru_cache
import structlog

logger = structlog.get_logger()

_WEAK_SECRET_MARKERS = ["your-secret-key", "change-me", "secret", "password", "12345"]


class Settings(BaseSettings):
    """
    Auth Core Configuration

    Signing secrets MUST be provided via environment variables.
    The service will fail fast if required security configurations are missing.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        validate_assignment=True,
        extra="ignore",
    )

    # Application settings
    APP_NAME: str = "Auth Core"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # API settings
    API_V1_STR: str = "/api/v1"
    HOST: str = "0.0.0.0"
    PORT: int = 5000
    APP_URL: Optional[str] = None  # Public origin used in emailed links

    # Signing secrets - REQUIRED, NO DEFAULTS, one per token purpose
    JWT_ACCESS_SECRET: str = Field(..., min_length=32)
    JWT_REFRESH_SECRET: str = Field(..., min_length=32)
    JWT_EMAIL_VERIFY_SECRET: str = Field(..., min_length=32)
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=30, ge=5, le=60)
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(default=7, ge=1, le=30)
    EMAIL_VERIFY_TOKEN_EXPIRE_HOURS: int = Field(default=24, ge=1, le=168)

    # Password hashing work factor (bcrypt log2 rounds)
    PASSWORD_HASH_ROUNDS: int = Field(default=12, ge=4, le=16)

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./auth_core.db"
    DATABASE_ECHO: bool = False
    DATABASE_CREATE_TABLES: bool = True

    # Email settings - optional outside production, delivery failures are logged
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_TLS: bool = True
    SMTP_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0, le=60)
    EMAILS_FROM_EMAIL: str = "no-reply@myapp.com"
    EMAILS_FROM_NAME: str = "My App"
    EMAIL_MAX_RETRIES: int = Field(default=3, ge=1, le=10)
    EMAIL_RETRY_BACKOFF_SECONDS: float = Field(default=0.5, ge=0, le=30)
    EMAIL_SEND_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0, le=300)

    # Refresh token cookie
    REFRESH_COOKIE_NAME: str = "refreshToken"
    REFRESH_COOKIE_PATH: str = "/"

    # CORS settings - should be environment-specific
    BACKEND_CORS_ORIGINS: List[str] = Field(default_factory=list)

    @field_validator("JWT_ACCESS_SECRET", "JWT_REFRESH_SECRET", "JWT_EMAIL_VERIFY_SECRET")
    @classmethod
    def validate_secrets(cls, v: str, info: ValidationInfo) -> str:
        """Validate that signing secrets are strong enough"""
        if len(v) < 32:
            raise ValueError(f"{info.field_name} must be at least 32 characters long")

        if any(bad in v.lower() for bad in _WEAK_SECRET_MARKERS):
            raise ValueError(f"{info.field_name} contains weak or default values")

        return v

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> List[str]:
        """Parse CORS origins from comma-separated string or list"""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        elif isinstance(v, list):
            return v
        return []

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        valid_envs = ["development", "staging", "production", "test"]
        if v not in valid_envs:
            raise ValueError(f"ENVIRONMENT must be one of: {valid_envs}")
        return v

    @model_validator(mode="after")
    def validate_distinct_secrets(self) -> "Settings":
        """Each token purpose is its own trust domain and needs its own key."""
        secrets = [self.JWT_ACCESS_SECRET, self.JWT_REFRESH_SECRET, self.JWT_EMAIL_VERIFY_SECRET]
        if len(set(secrets)) != len(secrets):
            raise ValueError("JWT_ACCESS_SECRET, JWT_REFRESH_SECRET and JWT_EMAIL_VERIFY_SECRET must differ")
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def public_url(self) -> str:
        """Origin used to build links sent to users."""
        return (self.APP_URL or f"http://localhost:{self.PORT}").rstrip("/")

    @property
    def smtp_configured(self) -> bool:
        return bool(self.SMTP_HOST and self.SMTP_USER and self.SMTP_PASSWORD)

    @property
    def refresh_cookie_max_age(self) -> int:
        return self.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 3600


def validate_required_settings(settings: Settings) -> None:
    """
    Validate that all required settings are properly configured.
    Fail fast if critical settings are missing or invalid.
    """
    errors = []

    # Check production-specific requirements
    if settings.is_production:
        if settings.DEBUG:
            errors.append("DEBUG must be False in production")

        if not settings.BACKEND_CORS_ORIGINS:
            errors.append("BACKEND_CORS_ORIGINS must be explicitly set in production")

        if not settings.APP_URL:
            errors.append("APP_URL must be set in production so verification links resolve")

        if not settings.smtp_configured:
            errors.append("SMTP_HOST, SMTP_USER and SMTP_PASSWORD are required in production")

        if settings.DATABASE_URL.startswith("sqlite"):
            errors.append("DATABASE_URL cannot use SQLite in production")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        logger.error(error_msg)
        raise ValueError(error_msg)

    logger.info(
        "Configuration validated successfully",
        environment=settings.ENVIRONMENT,
        debug=settings.DEBUG,
        cors_origins_count=len(settings.BACKEND_CORS_ORIGINS),
        smtp_configured=settings.smtp_configured,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Build the settings instance once at process start.
    Fails fast if required environment variables are missing.
    """
    try:
        settings = Settings()
        validate_required_settings(settings)
        return settings
    except ValidationError as e:
        logger.error("Failed to load settings", errors=e.errors())
        print("\n" + "="*60)
        print("CONFIGURATION ERROR")
        print("="*60)
        print("\nRequired environment variables are missing or invalid:")
        for error in e.errors():
            loc = error.get("loc") or ["settings"]
            msg = error.get("msg", "Invalid value")
            print(f"  - {loc[0]}: {msg}")
        print("\nPlease check your environment variables and .env file")
        print("="*60 + "\n")
        sys.exit(1)
    except ValueError as e:
        logger.error("Invalid configuration", error=str(e))
        sys.exit(1)
