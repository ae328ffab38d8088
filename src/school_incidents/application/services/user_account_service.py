"""Application service for creating accounts and changing passwords."""

from __future__ import annotations

import asyncio
import logging

from school_incidents.application.ports.credential_repository_port import (
    CredentialRepositoryPort,
    UserAccountCreateInput,
    UserAccountRecord,
)
from school_incidents.application.ports.password_hasher_port import (
    InvalidPasswordInputError,
    PasswordHasherPort,
)
from school_incidents.domain.auth.credentials import (
    normalize_user_email,
    validate_password_strength,
)

logger = logging.getLogger(__name__)


class WeakPasswordError(ValueError):
    """Raised when a new password fails the strength rules."""


class EmailAlreadyRegisteredError(ValueError):
    """Raised when an account already exists for one email."""

    def __init__(self, *, email: str) -> None:
        super().__init__(f"email already registered: {email}")
        self.email = email


class InvalidCredentialsError(PermissionError):
    """Raised when the current password does not match the stored hash."""

    def __init__(self) -> None:
        super().__init__("invalid credentials")


class UserAccountService:
    """Expose account provisioning use-cases that only ever persist hashes."""

    def __init__(
        self,
        *,
        credentials: CredentialRepositoryPort,
        password_hasher: PasswordHasherPort,
    ) -> None:
        self._credentials = credentials
        self._password_hasher = password_hasher

    async def create_user(self, *, name: str, email: str, password: str) -> UserAccountRecord:
        """Create one active account, enforcing one account per email."""

        normalized_name = name.strip()
        if not normalized_name:
            raise ValueError("name cannot be blank")
        normalized_email = normalize_user_email(email=email)
        self._require_strong_password(password)

        if await self._credentials.get_by_email(email=normalized_email) is not None:
            raise EmailAlreadyRegisteredError(email=normalized_email)

        password_hash = await self._hash_password(password)
        created = await self._credentials.create_user(
            UserAccountCreateInput(
                name=normalized_name,
                email=normalized_email,
                password_hash=password_hash,
            )
        )
        logger.info("user_created user_id=%s", created.user_id)
        return created

    async def change_password(
        self,
        *,
        email: str,
        current_password: str,
        new_password: str,
    ) -> None:
        """Replace a user's password after checking the current one."""

        normalized_email = normalize_user_email(email=email)
        user = await self._credentials.get_by_email(email=normalized_email)
        if user is None or not await asyncio.to_thread(
            self._password_hasher.verify_password,
            password=current_password,
            password_hash=user.password_hash or "",
        ):
            raise InvalidCredentialsError()

        self._require_strong_password(new_password)
        password_hash = await self._hash_password(new_password)
        await self._credentials.update_password_hash(
            credential_id=user.user_id,
            password_hash=password_hash,
        )
        logger.info("password_changed user_id=%s", user.user_id)

    def _require_strong_password(self, password: str) -> None:
        strength = validate_password_strength(password)
        if not strength.is_valid:
            raise WeakPasswordError(strength.error)

    async def _hash_password(self, password: str) -> str:
        try:
            return await asyncio.to_thread(self._password_hasher.hash_password, password)
        except InvalidPasswordInputError as error:
            raise WeakPasswordError(str(error)) from error
