"""Port for password hashing and verification."""

from __future__ import annotations

from typing import Protocol


class InvalidPasswordInputError(ValueError):
    """Raised when a password violates a hashing precondition."""


class PasswordHashingError(RuntimeError):
    """Raised when the hashing primitive fails on an acceptable password."""


class PasswordHasherPort(Protocol):
    """Password hashing/verification contract."""

    def hash_password(self, password: str) -> str:
        """Hash plaintext password for storage with a fresh salt."""

    def verify_password(self, *, password: str, password_hash: str) -> bool:
        """Verify plaintext password against stored hash, never raising."""

    def is_password_hash(self, value: object) -> bool:
        """Return whether a stored value is already a hash this hasher produces."""
