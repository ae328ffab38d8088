"""Application authentication service for credential verification."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import StrEnum

from school_incidents.application.ports.credential_repository_port import (
    CredentialRepositoryPort,
    UserAccountRecord,
)
from school_incidents.application.ports.password_hasher_port import PasswordHasherPort
from school_incidents.domain.auth.credentials import normalize_user_email

logger = logging.getLogger(__name__)


class AuthOutcome(StrEnum):
    """Supported authentication outcomes."""

    SUCCESS = "success"
    INVALID_CREDENTIALS = "invalid_credentials"
    INACTIVE_USER = "inactive_user"


@dataclass(frozen=True)
class AuthResult:
    """Authentication result model."""

    outcome: AuthOutcome
    user: UserAccountRecord | None = None


class AuthService:
    """Check login credentials against stored password hashes."""

    def __init__(
        self,
        *,
        credentials: CredentialRepositoryPort,
        password_hasher: PasswordHasherPort,
    ) -> None:
        self._credentials = credentials
        self._password_hasher = password_hasher

    async def authenticate(self, *, email: str, password: str) -> AuthResult:
        """Authenticate one email/password pair.

        Unknown emails and wrong passwords share one outcome. Stored values that
        are not hashes yet never match, so unmigrated accounts cannot log in
        with their plaintext.
        """

        try:
            normalized_email = normalize_user_email(email=email)
        except ValueError:
            return AuthResult(outcome=AuthOutcome.INVALID_CREDENTIALS)

        user = await self._credentials.get_by_email(email=normalized_email)
        if user is None:
            logger.info("login_failed email=%s reason=unknown_email", normalized_email)
            return AuthResult(outcome=AuthOutcome.INVALID_CREDENTIALS)

        if not user.is_active:
            logger.info("login_blocked_inactive user_id=%s", user.user_id)
            return AuthResult(outcome=AuthOutcome.INACTIVE_USER)

        stored_hash = user.password_hash or ""
        is_valid = self._password_hasher.is_password_hash(stored_hash) and await asyncio.to_thread(
            self._password_hasher.verify_password,
            password=password,
            password_hash=stored_hash,
        )
        if not is_valid:
            logger.info("login_failed user_id=%s reason=invalid_credentials", user.user_id)
            return AuthResult(outcome=AuthOutcome.INVALID_CREDENTIALS)

        logger.info("login_success user_id=%s", user.user_id)
        return AuthResult(outcome=AuthOutcome.SUCCESS, user=user)
