from __future__ import annotations

import json
from typing import Any
from urllib.parse import parse_qsl, urlsplit

import pytest

from school_incidents.application.services.auth_service import AuthOutcome, AuthService
from school_incidents.application.services.password_migration_service import (
    PasswordMigrationService,
)
from school_incidents.application.services.user_account_service import UserAccountService
from school_incidents.infrastructure.security.password_hasher import BcryptPasswordHasher
from school_incidents.infrastructure.store.credential_repository import StoreCredentialRepository
from school_incidents.infrastructure.store.postgrest_client import (
    PostgrestRecordStore,
    StoreHttpResponse,
)

_SERVICE_KEY = "service-role-key"


class FakePostgrestTransport:
    """Serve one in-memory table with the PostgREST subset the store adapter speaks."""

    def __init__(
        self,
        rows: list[dict[str, Any]],
        *,
        failing_patch_ids: set[str] | None = None,
    ) -> None:
        self.rows = rows
        self.failing_patch_ids = failing_patch_ids or set()
        self.requests: list[tuple[str, str]] = []
        self._next_id = len(rows) + 1

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> StoreHttpResponse:
        self.requests.append((method, url))
        if headers.get("apikey") != _SERVICE_KEY:
            return _json(401, {"message": "Invalid API key"})

        parts = urlsplit(url)
        assert parts.path == "/rest/v1/users"
        params = parse_qsl(parts.query)
        filters = {
            key: value.removeprefix("eq.")
            for key, value in params
            if key not in {"select", "order", "limit", "offset"}
        }
        matched = [row for row in self.rows if _matches(row, filters)]

        if method == "GET":
            options = dict(params)
            columns = options["select"].split(",")
            offset = int(options.get("offset", "0"))
            limit = int(options.get("limit", str(len(matched))))
            page = sorted(matched, key=lambda row: int(row["id"]))[offset : offset + limit]
            return _json(200, [{column: row.get(column) for column in columns} for row in page])

        payload = json.loads((body or b"null").decode("utf-8"))
        if method == "PATCH":
            if any(row["id"] in self.failing_patch_ids for row in matched):
                return _json(500, {"message": "statement timeout"})
            for row in matched:
                row.update(payload)
            return _json(200, matched)

        if method == "POST":
            inserted = []
            for new_row in payload:
                row = {"id": str(self._next_id), **new_row}
                self._next_id += 1
                self.rows.append(row)
                inserted.append(row)
            return _json(201, inserted)

        return _json(405, {"message": f"unsupported method {method}"})


def _matches(row: dict[str, Any], filters: dict[str, str]) -> bool:
    for column, expected in filters.items():
        value = row.get(column)
        if isinstance(value, bool):
            value = "true" if value else "false"
        if str(value) != expected:
            return False
    return True


def _json(status_code: int, payload: object) -> StoreHttpResponse:
    return StoreHttpResponse(status_code=status_code, body_bytes=json.dumps(payload).encode())


def _repository(transport: FakePostgrestTransport) -> StoreCredentialRepository:
    store = PostgrestRecordStore(
        base_url="https://project.supabase.co",
        service_key=_SERVICE_KEY,
        transport=transport,
        page_size=7,
    )
    return StoreCredentialRepository(store)


def _fleet(count: int) -> list[dict[str, Any]]:
    return [
        {
            "id": str(index),
            "name": f"Professor {index}",
            "email": f"prof{index}@escola.edu",
            "password_hash": f"senha-{index:03d}",
            "is_active": True,
        }
        for index in range(1, count + 1)
    ]


@pytest.mark.asyncio
async def test_migration_over_rest_store_survives_one_failed_update() -> None:
    transport = FakePostgrestTransport(_fleet(120), failing_patch_ids={"57"})
    hasher = BcryptPasswordHasher(rounds=4)
    service = PasswordMigrationService(
        credentials=_repository(transport),
        password_hasher=hasher,
        batch_size=50,
    )

    dry = await service.dry_run()
    report = await service.migrate()
    follow_up = await service.dry_run()

    assert len(dry.pending_emails) == 120
    assert report.migrated == 119
    assert report.failed == 1
    assert report.exit_code == 1
    assert report.failures[0].email == "prof57@escola.edu"
    assert "failed with status 500" in report.failures[0].error
    assert follow_up.pending_emails == ("prof57@escola.edu",)
    assert sum(1 for method, _ in transport.requests if method == "PATCH") == 120
    assert hasher.verify_password(
        password="senha-001",
        password_hash=transport.rows[0]["password_hash"],
    )


@pytest.mark.asyncio
async def test_migrated_accounts_log_in_and_new_accounts_store_hashes() -> None:
    transport = FakePostgrestTransport(_fleet(3))
    repository = _repository(transport)
    hasher = BcryptPasswordHasher(rounds=4)
    auth = AuthService(credentials=repository, password_hasher=hasher)

    before = await auth.authenticate(email="prof1@escola.edu", password="senha-001")
    await PasswordMigrationService(credentials=repository, password_hasher=hasher).migrate()
    after = await auth.authenticate(email="prof1@escola.edu", password="senha-001")

    assert before.outcome is AuthOutcome.INVALID_CREDENTIALS
    assert after.outcome is AuthOutcome.SUCCESS
    assert after.user is not None
    assert after.user.user_id == "1"

    accounts = UserAccountService(credentials=repository, password_hasher=hasher)
    created = await accounts.create_user(
        name="Nova Professora",
        email="nova@escola.edu",
        password="senha-inicial",
    )

    assert created.user_id == "4"
    assert hasher.is_password_hash(transport.rows[-1]["password_hash"])
    login = await auth.authenticate(email="nova@escola.edu", password="senha-inicial")
    assert login.outcome is AuthOutcome.SUCCESS


@pytest.mark.asyncio
async def test_empty_table_migrates_nothing_and_writes_nothing() -> None:
    transport = FakePostgrestTransport([])
    service = PasswordMigrationService(
        credentials=_repository(transport),
        password_hasher=BcryptPasswordHasher(rounds=4),
    )

    report = await service.migrate()

    assert report.total_users == 0
    assert report.migrated == 0
    assert report.exit_code == 0
    assert [method for method, _ in transport.requests] == ["GET"]
