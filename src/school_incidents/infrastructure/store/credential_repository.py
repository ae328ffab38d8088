"""Record-store adapter for the users table credential columns."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from school_incidents.application.ports.credential_repository_port import (
    CredentialRecord,
    CredentialRepositoryPort,
    UserAccountCreateInput,
    UserAccountRecord,
)
from school_incidents.application.ports.record_store_port import RecordStorePort, StoreError

_CREDENTIAL_COLUMNS = ("id", "email", "password_hash")
_ACCOUNT_COLUMNS = ("id", "name", "email", "password_hash", "is_active")


class StoreCredentialRepository(CredentialRepositoryPort):
    """Credential repository backed by an injected record store."""

    def __init__(self, store: RecordStorePort, *, table: str = "users") -> None:
        self._store = store
        self._table = table

    async def list_credentials(self) -> list[CredentialRecord]:
        rows = await self._store.fetch_rows(self._table, columns=_CREDENTIAL_COLUMNS)
        return [_to_credential_record(row) for row in rows]

    async def get_by_email(self, *, email: str) -> UserAccountRecord | None:
        rows = await self._store.fetch_rows(
            self._table,
            columns=_ACCOUNT_COLUMNS,
            filters={"email": email},
        )
        if not rows:
            return None
        return _to_user_account_record(rows[0])

    async def update_password_hash(self, *, credential_id: str, password_hash: str) -> None:
        await self._store.update_rows(
            self._table,
            filters={"id": credential_id},
            patch={"password_hash": password_hash},
        )

    async def create_user(self, payload: UserAccountCreateInput) -> UserAccountRecord:
        inserted = await self._store.insert_rows(
            self._table,
            rows=[
                {
                    "name": payload.name,
                    "email": payload.email,
                    "password_hash": payload.password_hash,
                    "is_active": payload.is_active,
                }
            ],
        )
        if len(inserted) != 1:
            raise StoreError(f"create_user expected one inserted row, got {len(inserted)}")
        return _to_user_account_record(inserted[0])


def _to_credential_record(row: Mapping[str, Any]) -> CredentialRecord:
    return CredentialRecord(
        credential_id=str(row["id"]),
        email=str(row.get("email") or ""),
        password_hash=_optional_str(row.get("password_hash")),
    )


def _to_user_account_record(row: Mapping[str, Any]) -> UserAccountRecord:
    return UserAccountRecord(
        user_id=str(row["id"]),
        name=str(row.get("name") or ""),
        email=str(row.get("email") or ""),
        password_hash=_optional_str(row.get("password_hash")),
        # Rows created before the column existed have no explicit flag.
        is_active=row.get("is_active") is not False,
    )


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    return str(value)
