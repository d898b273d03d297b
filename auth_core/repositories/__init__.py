"""
Repository implementations following the Repository pattern.
Provides the credential store over async SQLAlchemy.
"""

from .user_repository import UserRepository

__all__ = [
    "UserRepository"
]
