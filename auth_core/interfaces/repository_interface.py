"""
Repository interfaces for dependency abstraction.
Defines contracts for data access operations to enable dependency injection
and improve testability.
"""

from typing import Any, Optional, Protocol, runtime_checkable
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.user import User


@runtime_checkable
class IUserRepository(Protocol):
    """Protocol for the credential store."""

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        """
        Get user by normalized email.

        Args:
            db: Database session
            email: Normalized email address

        Returns:
            User instance or None if not found
        """
        ...

    async def get_by_id(self, db: AsyncSession, user_id: str) -> Optional[User]:
        """
        Get user by ID.

        Args:
            db: Database session
            user_id: User ID

        Returns:
            User instance or None if not found
        """
        ...

    async def create(self, db: AsyncSession, **fields: Any) -> User:
        """
        Create and persist a new user.

        Args:
            db: Database session
            **fields: Column values for the new record

        Returns:
            Created user instance

        Raises:
            EmailAlreadyRegistered: If the email is already taken
        """
        ...

    async def save(self, db: AsyncSession, user: User) -> User:
        """
        Persist changes made to a user.

        Args:
            db: Database session
            user: User instance carrying the changes

        Returns:
            Refreshed user instance
        """
        ...
