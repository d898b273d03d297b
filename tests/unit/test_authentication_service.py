"""
Unit tests for AuthenticationService with a mocked credential store.
"""
import asyncio
import uuid
from unittest.mock import AsyncMock
from urllib.parse import parse_qs, urlparse
import html
import re
import pytest

from auth_core.core.exceptions import (
    EmailAlreadyRegistered,
    EmailAlreadyVerified,
    EmailNotVerified,
    InvalidCredentials,
    MissingToken,
    TokenInvalid,
    TokenRevoked,
    UserNotFound,
)
from auth_core.core.security import PasswordHasher
from auth_core.models.user import User, UserRole
from auth_core.services.auth.authentication_service import AuthenticationService
from auth_core.services.auth.revocation_service import RevocationPolicy
from auth_core.services.auth.token_service import TokenPurpose
from tests.conftest import RecordingEmailTransport, build_settings
from tests.factories import DEFAULT_PASSWORD, UnverifiedUserFactory, UserFactory, test_hasher


def _created_user(db, **fields):
    return User(id=str(uuid.uuid4()), **fields)


def _token_from_email(body: str) -> str:
    href = re.search(r'href="([^"]+)"', body).group(1)
    return parse_qs(urlparse(html.unescape(href)).query)["token"][0]


@pytest.fixture
def repository():
    repo = AsyncMock()
    repo.get_by_email.return_value = None
    repo.get_by_id.return_value = None
    repo.create.side_effect = _created_user
    repo.save.side_effect = lambda db, user: user
    return repo


@pytest.fixture
def auth_service(test_settings, repository, token_service, email_transport):
    return AuthenticationService(
        settings=test_settings,
        user_repository=repository,
        password_hasher=test_hasher,
        token_service=token_service,
        revocation_policy=RevocationPolicy(repository),
        email_transport=email_transport,
    )


@pytest.mark.unit
class TestRegister:

    async def test_register_creates_unverified_user(self, auth_service, repository, email_transport):
        result = await auth_service.register(None, "  Alice  ", "  Alice@X.com ", "Secret123!")

        user = result.user
        assert user.name == "Alice"
        assert user.email == "alice@x.com"
        assert user.role == UserRole.USER
        assert user.is_email_verified is False
        assert user.token_version == 0
        assert user.password_hash != "Secret123!"
        assert test_hasher.verify("Secret123!", user.password_hash)
        assert result.verification_email_sent is True
        repository.get_by_email.assert_awaited_once_with(None, "alice@x.com")

        assert len(email_transport.sent) == 1
        assert email_transport.last["to"] == "alice@x.com"

    async def test_verification_link_carries_verify_token(self, auth_service, email_transport, token_service):
        result = await auth_service.register(None, "Alice", "alice@x.com", "Secret123!")

        body = email_transport.last["html_body"]
        assert "http://testserver/api/v1/auth/verify-email?token=" in html.unescape(body)

        claims = token_service.verify(_token_from_email(body), TokenPurpose.EMAIL_VERIFY)
        assert claims.subject == result.user.id
        assert claims.token_version == 0

    async def test_duplicate_email_rejected_before_hashing(self, auth_service, repository):
        repository.get_by_email.return_value = UserFactory(email="alice@x.com")

        with pytest.raises(EmailAlreadyRegistered):
            await auth_service.register(None, "Alice", "ALICE@x.com", "Secret123!")

        repository.create.assert_not_awaited()

    async def test_store_conflict_propagates(self, auth_service, repository):
        repository.create.side_effect = EmailAlreadyRegistered()

        with pytest.raises(EmailAlreadyRegistered):
            await auth_service.register(None, "Alice", "alice@x.com", "Secret123!")

    async def test_email_failure_keeps_registration(self, test_settings, repository, token_service, failing_email_transport):
        service = AuthenticationService(
            settings=test_settings,
            user_repository=repository,
            password_hasher=test_hasher,
            token_service=token_service,
            revocation_policy=RevocationPolicy(repository),
            email_transport=failing_email_transport,
        )

        result = await service.register(None, "Alice", "alice@x.com", "Secret123!")

        assert result.verification_email_sent is False
        repository.create.assert_awaited_once()

    async def test_email_timeout_keeps_registration(self, tmp_path, repository, token_service):
        class SlowTransport(RecordingEmailTransport):
            async def send(self, to, subject, html_body):
                await asyncio.sleep(5)

        settings = build_settings(tmp_path, EMAIL_SEND_TIMEOUT_SECONDS=0.05)
        service = AuthenticationService(
            settings=settings,
            user_repository=repository,
            password_hasher=test_hasher,
            token_service=token_service,
            revocation_policy=RevocationPolicy(repository),
            email_transport=SlowTransport(),
        )

        result = await service.register(None, "Alice", "alice@x.com", "Secret123!")

        assert result.verification_email_sent is False


@pytest.mark.unit
class TestVerifyEmail:

    async def test_verifies_pending_user(self, auth_service, repository, token_service):
        user = UnverifiedUserFactory()
        repository.get_by_id.return_value = user
        token = token_service.create_email_verification_token(user.id, user.token_version)

        verified = await auth_service.verify_email(None, token)

        assert verified.is_email_verified is True
        repository.save.assert_awaited_once_with(None, user)

    async def test_already_verified(self, auth_service, repository, token_service):
        user = UserFactory()
        repository.get_by_id.return_value = user
        token = token_service.create_email_verification_token(user.id, 0)

        with pytest.raises(EmailAlreadyVerified):
            await auth_service.verify_email(None, token)
        repository.save.assert_not_awaited()

    async def test_unknown_user(self, auth_service, token_service):
        token = token_service.create_email_verification_token("missing-user", 0)

        with pytest.raises(UserNotFound):
            await auth_service.verify_email(None, token)

    async def test_stale_version_rejected(self, auth_service, repository, token_service):
        user = UnverifiedUserFactory(token_version=1)
        repository.get_by_id.return_value = user
        token = token_service.create_email_verification_token(user.id, 0)

        with pytest.raises(TokenRevoked):
            await auth_service.verify_email(None, token)

    async def test_missing_token(self, auth_service):
        with pytest.raises(MissingToken) as exc_info:
            await auth_service.verify_email(None, None)
        assert exc_info.value.status_code == 400
        assert exc_info.value.headers is None

    async def test_access_token_is_not_a_verify_token(self, auth_service, repository, token_service):
        user = UnverifiedUserFactory()
        repository.get_by_id.return_value = user
        token = token_service.create_access_token(user.id, user.role, 0)

        with pytest.raises(TokenInvalid):
            await auth_service.verify_email(None, token)


@pytest.mark.unit
class TestLogin:

    async def test_login_issues_token_pair(self, auth_service, repository, token_service):
        user = UserFactory(email="alice@x.com", token_version=2)
        repository.get_by_email.return_value = user

        result = await auth_service.login(None, " Alice@X.com", DEFAULT_PASSWORD)

        assert result.user is user
        assert result.expires_in == 30 * 60
        access = token_service.verify(result.access_token, TokenPurpose.ACCESS)
        refresh = token_service.verify(result.refresh_token, TokenPurpose.REFRESH)
        assert access.subject == refresh.subject == user.id
        assert access.token_version == refresh.token_version == 2
        assert access.role is UserRole.USER
        repository.get_by_email.assert_awaited_once_with(None, "alice@x.com")

    async def test_unknown_email_and_wrong_password_look_alike(self, auth_service, repository):
        with pytest.raises(InvalidCredentials) as unknown:
            await auth_service.login(None, "nobody@x.com", DEFAULT_PASSWORD)

        repository.get_by_email.return_value = UserFactory()
        with pytest.raises(InvalidCredentials) as wrong:
            await auth_service.login(None, "alice@x.com", "Wrong123!")

        assert unknown.value.to_response() == wrong.value.to_response()
        assert unknown.value.status_code == wrong.value.status_code == 400

    async def test_unknown_email_still_spends_a_verification(self, auth_service):
        hasher = PasswordHasher(rounds=4)
        hasher.dummy_verify_async = AsyncMock()
        auth_service.password_hasher = hasher

        with pytest.raises(InvalidCredentials):
            await auth_service.login(None, "nobody@x.com", DEFAULT_PASSWORD)

        hasher.dummy_verify_async.assert_awaited_once_with(DEFAULT_PASSWORD)

    async def test_unverified_user_blocked_after_password_check(self, auth_service, repository):
        repository.get_by_email.return_value = UnverifiedUserFactory()

        with pytest.raises(EmailNotVerified):
            await auth_service.login(None, "alice@x.com", DEFAULT_PASSWORD)

    async def test_unverified_user_with_wrong_password(self, auth_service, repository):
        repository.get_by_email.return_value = UnverifiedUserFactory()

        with pytest.raises(InvalidCredentials):
            await auth_service.login(None, "alice@x.com", "Wrong123!")


@pytest.mark.unit
class TestSessionTokens:

    async def test_refresh_issues_new_pair(self, auth_service, repository, token_service):
        user = UserFactory()
        repository.get_by_id.return_value = user
        refresh = token_service.create_refresh_token(user.id, 0)

        result = await auth_service.refresh(None, refresh)

        assert token_service.verify(result.access_token, TokenPurpose.ACCESS).subject == user.id

    async def test_revoked_refresh_token_is_401(self, auth_service, repository, token_service):
        user = UserFactory(token_version=1)
        repository.get_by_id.return_value = user
        refresh = token_service.create_refresh_token(user.id, 0)

        with pytest.raises(TokenRevoked) as exc_info:
            await auth_service.refresh(None, refresh)
        assert exc_info.value.status_code == 401

    async def test_missing_refresh_token_is_401(self, auth_service):
        with pytest.raises(MissingToken) as exc_info:
            await auth_service.refresh(None, None)
        assert exc_info.value.status_code == 401
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

    async def test_refresh_token_cannot_authenticate_requests(self, auth_service, repository, token_service):
        user = UserFactory()
        repository.get_by_id.return_value = user
        refresh = token_service.create_refresh_token(user.id, 0)

        with pytest.raises(TokenInvalid):
            await auth_service.authenticate_access_token(None, refresh)

    async def test_logout_all_revokes_outstanding_tokens(self, auth_service, repository, token_service):
        user = UserFactory()
        repository.get_by_id.return_value = user
        access = token_service.create_access_token(user.id, user.role, 0)

        assert await auth_service.authenticate_access_token(None, access) is user
        assert await auth_service.logout_all(None, user) == 1

        with pytest.raises(TokenRevoked):
            await auth_service.authenticate_access_token(None, access)


@pytest.mark.unit
class TestResendVerification:

    async def test_sends_for_unverified_user(self, auth_service, repository, email_transport):
        repository.get_by_email.return_value = UnverifiedUserFactory(email="bob@x.com")

        await auth_service.resend_verification(None, "BOB@x.com")

        assert email_transport.last["to"] == "bob@x.com"

    async def test_silent_for_unknown_or_verified(self, auth_service, repository, email_transport):
        await auth_service.resend_verification(None, "nobody@x.com")
        repository.get_by_email.return_value = UserFactory()
        await auth_service.resend_verification(None, "alice@x.com")

        assert email_transport.sent == []
