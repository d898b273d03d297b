"""
Pytest configuration and fixtures for auth core testing.
Provides settings, database, email and application fixtures with proper cleanup.
"""
from typing import AsyncGenerator, List, Optional
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from auth_core.core.config import Settings
from auth_core.core.database import Database
from auth_core.core.exceptions import EmailDeliveryError
from auth_core.main import create_app
from auth_core.repositories.user_repository import UserRepository
from auth_core.services.auth.token_service import TokenService

TEST_ACCESS_KEY = "access-signing-key-for-tests-abcdefghijklmnop"
TEST_REFRESH_KEY = "refresh-signing-key-for-tests-abcdefghijklmno"
TEST_EMAIL_VERIFY_KEY = "email-verify-signing-key-for-tests-abcdefghij"


class RecordingEmailTransport:
    """Email transport that keeps outgoing messages in memory."""

    def __init__(self, fail_with: Optional[Exception] = None):
        self.sent: List[dict] = []
        self.fail_with = fail_with

    async def send(self, to: str, subject: str, html_body: str) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append({"to": to, "subject": subject, "html_body": html_body})

    @property
    def last(self) -> dict:
        return self.sent[-1]


def build_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        ENVIRONMENT="test",
        APP_URL="http://testserver",
        JWT_ACCESS_SECRET=TEST_ACCESS_KEY,
        JWT_REFRESH_SECRET=TEST_REFRESH_KEY,
        JWT_EMAIL_VERIFY_SECRET=TEST_EMAIL_VERIFY_KEY,
        PASSWORD_HASH_ROUNDS=4,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path}/test.db",
        EMAIL_SEND_TIMEOUT_SECONDS=5,
        EMAIL_RETRY_BACKOFF_SECONDS=0,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return build_settings(tmp_path)


@pytest.fixture
def email_transport() -> RecordingEmailTransport:
    return RecordingEmailTransport()


@pytest.fixture
def token_service(test_settings) -> TokenService:
    return TokenService(test_settings)


@pytest.fixture
def user_repository() -> UserRepository:
    return UserRepository()


@pytest_asyncio.fixture
async def database(test_settings) -> AsyncGenerator[Database, None]:
    """Database with tables created, disposed after the test."""
    db = Database(test_settings)
    await db.create_tables()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with database.session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def app(test_settings, email_transport):
    """Application wired to the test settings and in-memory email transport."""
    application = create_app(test_settings, email_transport=email_transport)
    # ASGITransport does not drive the lifespan, so start the container by hand
    await application.state.container.initialize()
    yield application
    await application.state.container.cleanup()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


@pytest.fixture
def failing_email_transport() -> RecordingEmailTransport:
    return RecordingEmailTransport(fail_with=EmailDeliveryError())
