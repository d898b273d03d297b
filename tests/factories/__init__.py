"""Test data factories for auth core testing."""

from .user_factory import (
    DEFAULT_PASSWORD,
    UnverifiedUserFactory,
    UserFactory,
    test_hasher,
)

__all__ = [
    "DEFAULT_PASSWORD",
    "UnverifiedUserFactory",
    "UserFactory",
    "test_hasher",
]
