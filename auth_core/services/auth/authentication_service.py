"""
Authentication service orchestrating registration, email verification,
login and token refresh.
Owns no cryptography: it sequences the hasher, token service, revocation
policy, credential store and email transport, and raises domain errors.
"""

import asyncio
import html
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote
from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ...core.config import Settings
from ...core.exceptions import (
    AuthServiceError,
    EmailAlreadyRegistered,
    EmailAlreadyVerified,
    EmailNotVerified,
    InvalidCredentials,
    TokenRevoked,
    UserNotFound,
)
from ...core.security import PasswordHasher, normalize_email
from ...interfaces.email_interface import IEmailTransport
from ...interfaces.repository_interface import IUserRepository
from ...models.user import User, UserRole
from .revocation_service import RevocationPolicy
from .token_service import TokenClaims, TokenPurpose, TokenService

logger = structlog.get_logger()


@dataclass
class RegistrationResult:
    user: User
    verification_email_sent: bool


@dataclass
class AuthResult:
    user: User
    access_token: str
    refresh_token: str
    expires_in: int


class AuthenticationService:
    """Service responsible for the credential lifecycle of a user."""

    def __init__(
        self,
        settings: Settings,
        user_repository: IUserRepository,
        password_hasher: PasswordHasher,
        token_service: TokenService,
        revocation_policy: RevocationPolicy,
        email_transport: IEmailTransport
    ):
        self.settings = settings
        self.user_repository = user_repository
        self.password_hasher = password_hasher
        self.token_service = token_service
        self.revocation_policy = revocation_policy
        self.email_transport = email_transport

    async def register(
        self,
        db: AsyncSession,
        name: str,
        email: str,
        password: str
    ) -> RegistrationResult:
        """
        Create an unverified account and send its verification link.

        The record persists even when the email cannot be delivered;
        delivery failures are logged and reported in the result.

        Raises:
            EmailAlreadyRegistered: If the normalized email is taken
        """
        normalized_email = normalize_email(email)

        if await self.user_repository.get_by_email(db, normalized_email):
            logger.info("Registration rejected, email in use")
            raise EmailAlreadyRegistered()

        password_hash = await self.password_hasher.hash_async(password)

        user = await self.user_repository.create(
            db,
            name=name.strip(),
            email=normalized_email,
            password_hash=password_hash,
            role=UserRole.USER,
            is_email_verified=False,
            two_factor_enabled=False,
            token_version=0,
        )

        verification_sent = await self._send_verification_email(user)

        logger.info("User registered successfully", user_id=user.id, verification_sent=verification_sent)
        return RegistrationResult(user=user, verification_email_sent=verification_sent)

    async def verify_email(self, db: AsyncSession, token: Optional[str]) -> User:
        """
        Complete the PENDING_VERIFICATION -> VERIFIED transition.

        Raises:
            MissingToken, TokenInvalid, TokenExpired: From token verification
            UserNotFound: If the subject no longer exists
            TokenRevoked: If the user's token version moved on
            EmailAlreadyVerified: If the email was verified before
        """
        claims = self.token_service.verify(token, TokenPurpose.EMAIL_VERIFY)

        user = await self.user_repository.get_by_id(db, claims.subject)
        if not user:
            logger.warning("Verification token for unknown user", user_id=claims.subject)
            raise UserNotFound()

        if not self.revocation_policy.is_current(claims.token_version, user):
            raise TokenRevoked()

        if user.is_email_verified:
            logger.info("Email already verified", user_id=user.id)
            raise EmailAlreadyVerified()

        user.is_email_verified = True
        user = await self.user_repository.save(db, user)

        logger.info("Email verified successfully", user_id=user.id)
        return user

    async def login(self, db: AsyncSession, email: str, password: str) -> AuthResult:
        """
        Authenticate with email and password.

        Unknown email and wrong password raise the same error so the
        response does not reveal which accounts exist.

        Raises:
            InvalidCredentials: Unknown email or wrong password
            EmailNotVerified: Correct password but email not verified yet
        """
        normalized_email = normalize_email(email)
        user = await self.user_repository.get_by_email(db, normalized_email)

        if not user:
            await self.password_hasher.dummy_verify_async(password)
            logger.info("Login failed", reason="user_not_found")
            raise InvalidCredentials()

        if not await self.password_hasher.verify_async(password, user.password_hash):
            logger.info("Login failed", reason="invalid_password", user_id=user.id)
            raise InvalidCredentials()

        if not user.is_email_verified:
            logger.info("Login failed", reason="email_not_verified", user_id=user.id)
            raise EmailNotVerified()

        result = self._issue_session_tokens(user)
        logger.info("User authenticated successfully", user_id=user.id)
        return result

    async def refresh(self, db: AsyncSession, refresh_token: Optional[str]) -> AuthResult:
        """
        Exchange a current refresh token for a new access/refresh pair.

        Raises:
            MissingToken, TokenInvalid, TokenExpired, TokenRevoked, UserNotFound
        """
        user, _ = await self._authenticate(db, refresh_token, TokenPurpose.REFRESH)
        result = self._issue_session_tokens(user)
        logger.info("Tokens refreshed", user_id=user.id)
        return result

    async def authenticate_access_token(self, db: AsyncSession, access_token: Optional[str]) -> User:
        """Resolve the user behind a current access token."""
        user, _ = await self._authenticate(db, access_token, TokenPurpose.ACCESS)
        return user

    async def logout_all(self, db: AsyncSession, user: User) -> int:
        """Revoke every outstanding token of the user."""
        return await self.revocation_policy.revoke_all(db, user)

    async def resend_verification(self, db: AsyncSession, email: str) -> None:
        """
        Send a fresh verification link when the account exists and is unverified.
        Silent otherwise, so callers cannot probe for accounts.
        """
        user = await self.user_repository.get_by_email(db, normalize_email(email))
        if not user or user.is_email_verified:
            logger.info("Verification resend skipped")
            return
        await self._send_verification_email(user)

    def build_verification_url(self, token: str) -> str:
        return f"{self.settings.public_url}{self.settings.API_V1_STR}/auth/verify-email?token={quote(token, safe='')}"

    async def _send_verification_email(self, user: User) -> bool:
        token = self.token_service.create_email_verification_token(user.id, user.token_version)
        verify_url = html.escape(self.build_verification_url(token), quote=True)
        body = (
            "<p>Please verify your email by following this link:</p>"
            f'<p><a href="{verify_url}">{verify_url}</a></p>'
        )

        try:
            await asyncio.wait_for(
                self.email_transport.send(user.email, "Verify your email", body),
                timeout=self.settings.EMAIL_SEND_TIMEOUT_SECONDS,
            )
            return True
        except Exception as e:
            # Registration stands without the email; the user can request a resend
            logger.error(
                "Failed to send verification email",
                user_id=user.id,
                error_type=type(e).__name__,
                error=str(e)
            )
            return False

    async def _authenticate(
        self,
        db: AsyncSession,
        token: Optional[str],
        purpose: TokenPurpose
    ) -> tuple[User, TokenClaims]:
        try:
            claims = self.token_service.verify(token, purpose)

            user = await self.user_repository.get_by_id(db, claims.subject)
            if not user:
                raise UserNotFound()

            if not self.revocation_policy.is_current(claims.token_version, user):
                logger.info("Revoked token presented", user_id=user.id, purpose=purpose.value)
                raise TokenRevoked()

            return user, claims
        except AuthServiceError as e:
            e.status_code = status.HTTP_401_UNAUTHORIZED
            e.headers = {"WWW-Authenticate": "Bearer"}
            raise

    def _issue_session_tokens(self, user: User) -> AuthResult:
        access_token = self.token_service.create_access_token(user.id, user.role, user.token_version)
        refresh_token = self.token_service.create_refresh_token(user.id, user.token_version)
        return AuthResult(
            user=user,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=int(self.token_service.ttl_for(TokenPurpose.ACCESS).total_seconds()),
        )
