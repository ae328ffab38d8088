"""Port for reading and rewriting stored user credentials."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class CredentialRecord:
    """Stored password value of one user, plaintext or hashed."""

    credential_id: str
    email: str
    password_hash: str | None


@dataclass(frozen=True)
class UserAccountRecord:
    """User row as needed by login and account provisioning."""

    user_id: str
    name: str
    email: str
    password_hash: str | None
    is_active: bool


@dataclass(frozen=True)
class UserAccountCreateInput:
    """Payload for creating one user account with an already-hashed password."""

    name: str
    email: str
    password_hash: str
    is_active: bool = True


class CredentialRepositoryPort(Protocol):
    """Credential repository contract."""

    async def list_credentials(self) -> list[CredentialRecord]:
        """Return the stored password value of every user."""

    async def get_by_email(self, *, email: str) -> UserAccountRecord | None:
        """Return user by normalized email, including inactive users."""

    async def update_password_hash(self, *, credential_id: str, password_hash: str) -> None:
        """Replace the stored password value of one user."""

    async def create_user(self, payload: UserAccountCreateInput) -> UserAccountRecord:
        """Insert one user account and return the persisted row."""
