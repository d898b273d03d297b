"""
Authentication-related Pydantic schemas for request/response validation.
"""
from typing import Any, Generic, Optional, TypeVar
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ..core.security import validate_password_strength
from ..models.user import UserRole

T = TypeVar("T")


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


class RegistrationRequest(BaseModel):
    """Registration request schema."""

    name: str = Field(..., min_length=1, max_length=128, description="Display name")
    email: EmailStr = Field(..., description="User's email address (must be unique)")
    password: str = Field(..., description="Password meeting the strength policy")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "name": "A",
            "email": "a@x.com",
            "password": "Secret123!"
        }
    })

    strip_name = field_validator("name", mode="before")(_strip)
    strip_email = field_validator("email", mode="before")(_strip)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        is_valid, errors = validate_password_strength(v)
        if not is_valid:
            raise ValueError("; ".join(errors))
        return v


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=1, max_length=256, description="User's password")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "email": "a@x.com",
            "password": "Secret123!"
        }
    })

    strip_email = field_validator("email", mode="before")(_strip)


class ResendVerificationRequest(BaseModel):
    """Verification email resend request schema."""

    email: EmailStr = Field(..., description="Address the account was registered with")

    strip_email = field_validator("email", mode="before")(_strip)


class UserResponse(BaseModel):
    """Sanitized user projection. Never carries the password hash."""

    id: str
    name: str
    email: str
    role: UserRole
    is_email_verified: bool
    two_factor_enabled: bool

    model_config = ConfigDict(from_attributes=True)


class RegistrationData(BaseModel):
    user: UserResponse
    verification_email_sent: bool


class LoginData(BaseModel):
    access_token: str = Field(..., description="Signed access token")
    token_type: str = Field("bearer", description="Token type")
    expires_in: int = Field(..., description="Access token lifetime in seconds")
    user: UserResponse


class SuccessResponse(BaseModel, Generic[T]):
    """Envelope for successful responses."""

    success: bool = True
    message: str
    data: Optional[T] = None


class ErrorResponse(BaseModel):
    """Envelope for failed responses."""

    success: bool = False
    message: str
    error_code: Optional[str] = None
    errors: Optional[Any] = None
