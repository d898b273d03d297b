"""
Service layer for the auth core.
"""
from .auth import AuthenticationService, RevocationPolicy, TokenService
from .email_service import SMTPEmailTransport

__all__ = [
    "AuthenticationService",
    "RevocationPolicy",
    "SMTPEmailTransport",
    "TokenService",
]
