"""
User repository implementation following the Repository pattern.
Handles all credential record access over async SQLAlchemy.
"""

from typing import Any, Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.exceptions import EmailAlreadyRegistered
from ..interfaces.repository_interface import IUserRepository
from ..models.user import User

logger = structlog.get_logger()


class UserRepository(IUserRepository):
    """Repository for user credential records."""

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_by_id(self, db: AsyncSession, user_id: str) -> Optional[User]:
        return await db.get(User, user_id)

    async def create(self, db: AsyncSession, **fields: Any) -> User:
        """
        Create a new user.

        The unique index on ``email`` decides concurrent registrations:
        the losing insert is rolled back and reported as a conflict.
        """
        user = User(**fields)
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.info("User creation rejected by unique constraint")
            raise EmailAlreadyRegistered()
        except Exception as e:
            await db.rollback()
            logger.error("User creation failed", error=str(e))
            raise
        await db.refresh(user)

        logger.info("User created successfully", user_id=user.id)
        return user

    async def save(self, db: AsyncSession, user: User) -> User:
        db.add(user)
        try:
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error("User update failed", user_id=user.id, error=str(e))
            raise
        await db.refresh(user)
        return user
