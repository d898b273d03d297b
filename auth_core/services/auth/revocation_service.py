"""
Revocation policy built on the per-user token version counter.
A token is current only while its embedded version equals the record's.
"""

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ...interfaces.repository_interface import IUserRepository
from ...models.user import User

logger = structlog.get_logger()


class RevocationPolicy:
    """Decides whether a token's version stamp is still honoured."""

    def __init__(self, user_repository: IUserRepository):
        self.user_repository = user_repository

    @staticmethod
    def is_current(token_version: int, user: User) -> bool:
        return token_version == user.token_version

    async def revoke_all(self, db: AsyncSession, user: User) -> int:
        """
        Invalidate every token previously issued to the user.

        Args:
            db: Database session
            user: User whose tokens are revoked

        Returns:
            The new token version
        """
        user.token_version = (user.token_version or 0) + 1
        await self.user_repository.save(db, user)

        logger.info("All user tokens revoked", user_id=user.id, token_version=user.token_version)
        return user.token_version
