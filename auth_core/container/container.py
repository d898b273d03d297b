"""
Dependency injection container implementation.
Wires the service graph once per process from an explicit Settings instance.
"""

from typing import Optional
import structlog

from ..core.config import Settings
from ..core.database import Database
from ..core.security import PasswordHasher
from ..interfaces.email_interface import IEmailTransport
from ..interfaces.repository_interface import IUserRepository
from ..repositories.user_repository import UserRepository
from ..services.auth.authentication_service import AuthenticationService
from ..services.auth.revocation_service import RevocationPolicy
from ..services.auth.token_service import TokenService
from ..services.email_service import SMTPEmailTransport

logger = structlog.get_logger()


class Container:
    """Holds the long-lived collaborators shared by all requests."""

    def __init__(
        self,
        settings: Settings,
        email_transport: Optional[IEmailTransport] = None,
        user_repository: Optional[IUserRepository] = None,
        token_service: Optional[TokenService] = None
    ):
        self.settings = settings
        self.database = Database(settings)
        self.user_repository = user_repository or UserRepository()
        self.password_hasher = PasswordHasher(rounds=settings.PASSWORD_HASH_ROUNDS)
        self.token_service = token_service or TokenService(settings)
        self.revocation_policy = RevocationPolicy(self.user_repository)
        self.email_transport = email_transport or SMTPEmailTransport(settings)
        self.auth_service = AuthenticationService(
            settings=settings,
            user_repository=self.user_repository,
            password_hasher=self.password_hasher,
            token_service=self.token_service,
            revocation_policy=self.revocation_policy,
            email_transport=self.email_transport,
        )
        self._initialized = False

    async def initialize(self) -> None:
        """Prepare resources that need the event loop."""
        if self._initialized:
            return

        if self.settings.DATABASE_CREATE_TABLES:
            await self.database.create_tables()

        self._initialized = True
        logger.info(
            "Dependency injection container initialized",
            email_transport=type(self.email_transport).__name__,
        )

    async def cleanup(self) -> None:
        """Cleanup container resources."""
        await self.database.dispose()
        self._initialized = False
        logger.info("Container cleanup completed")
