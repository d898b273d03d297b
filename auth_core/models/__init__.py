"""
Database models for the auth core.
"""
from .base import Base
from .user import User, UserRole

__all__ = [
    "Base",
    "User",
    "UserRole",
]
