"""
User credential record.
"""
import enum
import uuid
from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String

from .base import BaseModel


class UserRole(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class User(BaseModel):
    """User credential record with the fields authentication reads and mutates."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(128), nullable=False)
    # Stored normalized (trimmed, lower-case); the unique index is the arbiter for concurrent sign-ups
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(
        Enum(UserRole, name="user_role", native_enum=False, length=16),
        default=UserRole.USER,
        nullable=False
    )
    is_email_verified = Column(Boolean, default=False, nullable=False)

    # Reserved for two-factor support; no flow reads them yet
    two_factor_enabled = Column(Boolean, default=False, nullable=False)
    two_factor_secret = Column(String(255), nullable=True)

    token_version = Column(Integer, default=0, nullable=False)

    # Reserved for password reset
    reset_password_token = Column(String(255), nullable=True)
    reset_password_expires = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role={self.role}, verified={self.is_email_verified})>"
