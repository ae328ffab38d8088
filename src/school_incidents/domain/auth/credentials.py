"""Shared rules for user credential inputs and stored password values."""

from __future__ import annotations

import re
from dataclasses import dataclass

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 72
# bcrypt reads at most this many bytes of the encoded secret.
MAX_PASSWORD_BYTES = 72

_BCRYPT_HASH_PATTERN = re.compile(r"\$2[aby]\$\d{2}\$[./A-Za-z0-9]{53}")


@dataclass(frozen=True)
class PasswordStrengthResult:
    """Outcome of one password strength check."""

    is_valid: bool
    error: str | None = None


def normalize_user_email(*, email: str) -> str:
    """Normalize one user email and reject blank values."""

    normalized = email.strip().lower()
    if not normalized:
        raise ValueError("email cannot be blank")
    return normalized


def validate_password_strength(password: str | None) -> PasswordStrengthResult:
    """Check a candidate password against the length rules accepted for storage.

    Length is counted in characters first. A password that fits in characters
    but whose UTF-8 encoding is longer than ``MAX_PASSWORD_BYTES`` is rejected
    too, since bcrypt would otherwise ignore the trailing bytes.
    """

    if not password:
        return PasswordStrengthResult(is_valid=False, error="Password is required")

    if len(password) < MIN_PASSWORD_LENGTH:
        return PasswordStrengthResult(
            is_valid=False,
            error=f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
        )

    if len(password) > MAX_PASSWORD_LENGTH:
        return PasswordStrengthResult(
            is_valid=False,
            error=f"Password must be less than {MAX_PASSWORD_LENGTH} characters long",
        )

    if password_byte_length(password) > MAX_PASSWORD_BYTES:
        return PasswordStrengthResult(
            is_valid=False,
            error=f"Password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded",
        )

    if "\x00" in password:
        return PasswordStrengthResult(
            is_valid=False,
            error="Password cannot contain NUL characters",
        )

    return PasswordStrengthResult(is_valid=True)


def is_password_hash(value: object) -> bool:
    """Return whether a stored value has the structure of a bcrypt hash.

    Only the prefix, the two-digit cost and the payload length/alphabet are
    checked; the payload is never decoded.
    """

    if not isinstance(value, str):
        return False
    return _BCRYPT_HASH_PATTERN.fullmatch(value) is not None


def password_byte_length(password: str) -> int:
    """Return the UTF-8 encoded length of one password."""

    return len(password.encode("utf-8"))
