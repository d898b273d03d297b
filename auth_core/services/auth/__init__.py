"""
Decomposed authentication services following Single Responsibility Principle.
Each service handles a specific aspect of authentication functionality.
"""

from .authentication_service import AuthenticationService
from .revocation_service import RevocationPolicy
from .token_service import TokenClaims, TokenPurpose, TokenService

__all__ = [
    "AuthenticationService",
    "RevocationPolicy",
    "TokenClaims",
    "TokenPurpose",
    "TokenService",
]
