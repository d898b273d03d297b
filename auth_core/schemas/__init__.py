"""
Pydantic schemas for request/response validation.
"""

from .auth_schemas import (
    ErrorResponse,
    LoginData,
    LoginRequest,
    RegistrationData,
    RegistrationRequest,
    ResendVerificationRequest,
    SuccessResponse,
    UserResponse,
)

__all__ = [
    "ErrorResponse",
    "LoginData",
    "LoginRequest",
    "RegistrationData",
    "RegistrationRequest",
    "ResendVerificationRequest",
    "SuccessResponse",
    "UserResponse",
]
