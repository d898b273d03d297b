"""
Domain error taxonomy for the auth core.

Services raise these; the HTTP layer translates them into the
``{"success": false, "message": ..., "error_code": ...}`` envelope.
"""
from typing import Any, Dict, Optional
from fastapi import status


class AuthServiceError(Exception):
    """Base class for every error the auth core reports to callers."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "AUTH_ERROR"
    message: str = "Request could not be processed"
    headers: Optional[Dict[str, str]] = None

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None
    ):
        self.message = message or self.message
        if status_code is not None:
            self.status_code = status_code
        if headers is not None:
            self.headers = headers
        super().__init__(self.message)

    def to_response(self) -> Dict[str, Any]:
        return {"success": False, "message": self.message, "error_code": self.error_code}


class ValidationFailed(AuthServiceError):
    error_code = "VALIDATION_ERROR"
    message = "Invalid Data!"


class Conflict(AuthServiceError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"
    message = "Resource state conflict"


class EmailAlreadyRegistered(Conflict):
    error_code = "EMAIL_IN_USE"
    message = "Given email is already in use, try with a different email"


class EmailAlreadyVerified(Conflict):
    error_code = "EMAIL_ALREADY_VERIFIED"
    message = "This user's email is already verified"


class UserNotFound(AuthServiceError):
    error_code = "USER_NOT_FOUND"
    message = "User not found"


class InvalidCredentials(AuthServiceError):
    error_code = "INVALID_CREDENTIALS"
    message = "Invalid email or password"


class EmailNotVerified(AuthServiceError):
    error_code = "EMAIL_NOT_VERIFIED"
    message = "Email address has not been verified"


class TokenError(AuthServiceError):
    error_code = "TOKEN_ERROR"
    message = "Token could not be validated"


class MissingToken(TokenError):
    error_code = "TOKEN_MISSING"
    message = "Token is missing"


class TokenInvalid(TokenError):
    error_code = "TOKEN_INVALID"
    message = "Token is invalid"


class TokenExpired(TokenError):
    error_code = "TOKEN_EXPIRED"
    message = "Token has expired"


class TokenRevoked(TokenError):
    error_code = "TOKEN_REVOKED"
    message = "Token has been revoked"


class EmailDeliveryError(AuthServiceError):
    """Outbound email failed. Logged by callers, never surfaced as fatal."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "EMAIL_DELIVERY_FAILED"
    message = "Email could not be delivered"


class HashingError(AuthServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "INTERNAL_ERROR"
    message = "Internal server error"
