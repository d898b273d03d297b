"""
Password hashing and password policy.
"""
import asyncio
import re
from typing import Optional
from passlib.context import CryptContext
import structlog

from .exceptions import HashingError

logger = structlog.get_logger()

PASSWORD_MIN_LENGTH = 8
# bcrypt only reads the first 72 bytes of its input
PASSWORD_MAX_BYTES = 72


class PasswordHasher:
    """One-way, salted password hashing with constant-time verification."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )
        self._dummy_hash: Optional[str] = None

    def hash(self, password: str) -> str:
        """Generate a salted password hash."""
        try:
            return self._context.hash(password)
        except Exception as e:
            logger.error("Password hashing failed", error_type=type(e).__name__)
            raise HashingError() from e

    def verify(self, password: str, password_hash: Optional[str]) -> bool:
        """Verify a password against its hash. Never raises for bad input."""
        if not password_hash:
            return False
        try:
            return self._context.verify(password, password_hash)
        except (ValueError, TypeError):
            return False

    def dummy_verify(self, password: str) -> None:
        """Spend one verification worth of work against a throw-away hash."""
        if self._dummy_hash is None:
            self._dummy_hash = self.hash("dummy-password-for-timing")
        self.verify(password, self._dummy_hash)

    async def hash_async(self, password: str) -> str:
        return await asyncio.to_thread(self.hash, password)

    async def verify_async(self, password: str, password_hash: Optional[str]) -> bool:
        return await asyncio.to_thread(self.verify, password, password_hash)

    async def dummy_verify_async(self, password: str) -> None:
        await asyncio.to_thread(self.dummy_verify, password)


def validate_password_strength(password: str) -> tuple[bool, list[str]]:
    """Validate password meets security requirements"""
    errors = []

    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")

    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        errors.append(f"Password must be at most {PASSWORD_MAX_BYTES} bytes")

    if "\x00" in password:
        errors.append("Password must not contain NUL characters")

    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")

    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")

    if not re.search(r"\d", password):
        errors.append("Password must contain at least one number")

    # Check for common passwords
    common_passwords = ["password", "password1", "12345678", "letmein1", "welcome1"]
    if password.lower() in common_passwords:
        errors.append("Password is too common")

    return len(errors) == 0, errors


def normalize_email(email: str) -> str:
    """Canonical form of an email used as the identity key."""
    return email.strip().lower()
