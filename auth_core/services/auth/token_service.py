"""
Token service focused solely on signed token operations.
Follows Single Responsibility Principle by handling only token issuance
and verification. Revocation is checked by callers against the store.
"""

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional
from jose import jwt
from jose.exceptions import JOSEError
from jose.utils import base64url_decode, base64url_encode
import structlog

from ...core.config import Settings
from ...core.exceptions import MissingToken, TokenExpired, TokenInvalid
from ...models.user import UserRole

logger = structlog.get_logger()


class TokenPurpose(str, enum.Enum):
    ACCESS = "access"
    REFRESH = "refresh"
    EMAIL_VERIFY = "email-verify"


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a token."""

    subject: str
    purpose: TokenPurpose
    token_version: int
    issued_at: datetime
    expires_at: datetime
    role: Optional[UserRole] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_canonical(token: str) -> bool:
    """True when every segment is in the one encoding the signer produces."""
    segments = token.split(".")
    if len(segments) != 3:
        return False
    try:
        for segment in segments:
            raw = segment.encode("ascii")
            # Spare low bits of the last base64 character are ignored by the decoder
            if base64url_encode(base64url_decode(raw)) != raw:
                return False
    except (ValueError, TypeError):
        return False
    return True


class TokenService:
    """Service responsible for signing and verifying tokens."""

    def __init__(self, settings: Settings, clock: Callable[[], datetime] = _utcnow):
        self.algorithm = settings.JWT_ALGORITHM
        self._clock = clock
        # One signing key per purpose so a token of one kind never verifies as another
        self._keys: Dict[TokenPurpose, str] = {
            TokenPurpose.ACCESS: settings.JWT_ACCESS_SECRET,
            TokenPurpose.REFRESH: settings.JWT_REFRESH_SECRET,
            TokenPurpose.EMAIL_VERIFY: settings.JWT_EMAIL_VERIFY_SECRET,
        }
        self._ttls: Dict[TokenPurpose, timedelta] = {
            TokenPurpose.ACCESS: timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            TokenPurpose.REFRESH: timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
            TokenPurpose.EMAIL_VERIFY: timedelta(hours=settings.EMAIL_VERIFY_TOKEN_EXPIRE_HOURS),
        }

    def ttl_for(self, purpose: TokenPurpose) -> timedelta:
        return self._ttls[purpose]

    def issue(
        self,
        purpose: TokenPurpose,
        subject: str,
        token_version: int,
        role: Optional[UserRole] = None,
        ttl: Optional[timedelta] = None
    ) -> str:
        """
        Create a signed token.

        Args:
            purpose: What the token may be used for; selects the signing key
            subject: User ID
            token_version: User's token version at issuance
            role: Role claim (optional)
            ttl: Lifetime, defaults to the purpose's configured lifetime

        Returns:
            Compact JWT string
        """
        issued_at = self._clock().replace(microsecond=0)
        expires_at = issued_at + (ttl if ttl is not None else self._ttls[purpose])

        claims: Dict[str, Any] = {
            "sub": str(subject),
            "tv": int(token_version),
            "type": purpose.value,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        if role is not None:
            claims["role"] = UserRole(role).value

        token = jwt.encode(claims, self._keys[purpose], algorithm=self.algorithm)
        logger.debug("Token issued", user_id=subject, purpose=purpose.value)
        return token

    def create_access_token(self, subject: str, role: UserRole, token_version: int) -> str:
        return self.issue(TokenPurpose.ACCESS, subject, token_version, role=role)

    def create_refresh_token(self, subject: str, token_version: int) -> str:
        return self.issue(TokenPurpose.REFRESH, subject, token_version)

    def create_email_verification_token(self, subject: str, token_version: int) -> str:
        return self.issue(TokenPurpose.EMAIL_VERIFY, subject, token_version)

    def verify(self, token: Optional[str], expected_purpose: TokenPurpose) -> TokenClaims:
        """
        Verify a token's signature, shape, purpose and expiry.

        Signature is checked before expiry, so an expired token is only
        reported as expired when it was genuinely issued by us.

        Raises:
            MissingToken: No token supplied
            TokenInvalid: Bad signature, malformed payload or wrong purpose
            TokenExpired: Valid token whose expiry has passed
        """
        if token is None or (isinstance(token, str) and not token.strip()):
            raise MissingToken()
        if not isinstance(token, str):
            raise TokenInvalid()

        if not _is_canonical(token):
            logger.debug("Token rejected", purpose=expected_purpose.value, reason="non_canonical_encoding")
            raise TokenInvalid()

        try:
            payload = jwt.decode(
                token,
                self._keys[expected_purpose],
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except (JOSEError, ValueError, TypeError) as e:
            logger.debug("Token rejected", purpose=expected_purpose.value, reason=type(e).__name__)
            raise TokenInvalid() from e

        claims = self._parse_claims(payload, expected_purpose)

        if self._clock() > claims.expires_at:
            raise TokenExpired()

        return claims

    def _parse_claims(self, payload: Dict[str, Any], expected_purpose: TokenPurpose) -> TokenClaims:
        if payload.get("type") != expected_purpose.value:
            raise TokenInvalid()

        subject = payload.get("sub")
        token_version = payload.get("tv")
        issued_at = payload.get("iat")
        expires_at = payload.get("exp")

        if not isinstance(subject, str) or not subject:
            raise TokenInvalid()
        for value in (token_version, issued_at, expires_at):
            # bool is an int subclass and never a valid claim here
            if not isinstance(value, int) or isinstance(value, bool):
                raise TokenInvalid()

        role = payload.get("role")
        if role is not None:
            try:
                role = UserRole(role)
            except ValueError:
                raise TokenInvalid()

        return TokenClaims(
            subject=subject,
            purpose=expected_purpose,
            token_version=token_version,
            issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
            role=role,
        )
