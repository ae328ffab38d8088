"""Bcrypt password hasher adapter."""

from __future__ import annotations

import logging

import bcrypt

from school_incidents.application.ports.password_hasher_port import (
    InvalidPasswordInputError,
    PasswordHasherPort,
    PasswordHashingError,
)
from school_incidents.domain.auth.credentials import (
    MAX_PASSWORD_BYTES,
    MIN_PASSWORD_LENGTH,
    is_password_hash,
    password_byte_length,
)

logger = logging.getLogger(__name__)

DEFAULT_BCRYPT_ROUNDS = 12


class VerificationError(Exception):
    """Internal failure while comparing a password with a stored hash."""


class BcryptPasswordHasher(PasswordHasherPort):
    """Password hashing adapter using bcrypt with a fixed cost factor."""

    def __init__(self, *, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError(f"bcrypt rounds must be between 4 and 31, got {rounds}")
        self._rounds = rounds

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash_password(self, password: str) -> str:
        if not isinstance(password, str) or not password.strip():
            raise InvalidPasswordInputError("password cannot be empty")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidPasswordInputError(
                f"password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )
        if password_byte_length(password) > MAX_PASSWORD_BYTES:
            raise InvalidPasswordInputError(
                f"password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded"
            )
        # Some bcrypt builds stop reading the secret at the first NUL byte.
        if "\x00" in password:
            raise InvalidPasswordInputError("password cannot contain NUL characters")

        encoded = password.encode("utf-8")
        try:
            hashed = bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds))
        except Exception as error:  # noqa: BLE001
            raise PasswordHashingError(f"failed to hash password: {error}") from error
        return hashed.decode("utf-8")

    def verify_password(self, *, password: str, password_hash: str) -> bool:
        if not password or not password_hash:
            return False
        try:
            return self._compare(password=password, password_hash=password_hash)
        except VerificationError as error:
            logger.debug("password_verification_failed reason=%s", error.__cause__)
            return False

    def is_password_hash(self, value: object) -> bool:
        return is_password_hash(value)

    def _compare(self, *, password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except (AttributeError, TypeError, ValueError) as error:
            raise VerificationError("stored hash could not be compared") from error
