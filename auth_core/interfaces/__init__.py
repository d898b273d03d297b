"""
Interface definitions for dependency abstractions.
These Protocol classes define contracts for collaborators to enable dependency injection
and improve testability.
"""

from .email_interface import IEmailTransport
from .repository_interface import IUserRepository

__all__ = [
    "IEmailTransport",
    "IUserRepository",
]
