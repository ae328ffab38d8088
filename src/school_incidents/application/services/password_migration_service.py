"""Service for upgrading stored plaintext passwords to salted hashes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from school_incidents.application.ports.credential_repository_port import (
    CredentialRecord,
    CredentialRepositoryPort,
)
from school_incidents.application.ports.password_hasher_port import PasswordHasherPort

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50


@dataclass(frozen=True)
class CredentialClassification:
    """Partition of stored credentials by their current password state."""

    total: int
    no_password: tuple[CredentialRecord, ...]
    already_hashed: tuple[CredentialRecord, ...]
    to_migrate: tuple[CredentialRecord, ...]


@dataclass(frozen=True)
class MigrationFailure:
    """One credential that could not be migrated during a run."""

    credential_id: str
    email: str
    error: str


@dataclass(frozen=True)
class PasswordMigrationReport:
    """Summary of one dry or real migration run."""

    dry_run: bool
    total_users: int
    already_hashed: int
    no_password: int
    migrated: int
    failed: int
    pending_emails: tuple[str, ...]
    failures: tuple[MigrationFailure, ...] = ()

    @property
    def exit_code(self) -> int:
        return 1 if self.failed > 0 else 0


@dataclass(frozen=True)
class _CredentialMigrationResult:
    record: CredentialRecord
    error: str | None


class PasswordMigrationService:
    """Classify stored credentials and rehash the plaintext ones in bounded batches."""

    def __init__(
        self,
        *,
        credentials: CredentialRepositoryPort,
        password_hasher: PasswordHasherPort,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._credentials = credentials
        self._password_hasher = password_hasher
        self._batch_size = batch_size

    async def classify(self) -> CredentialClassification:
        """Load every credential and partition it; store errors propagate."""

        records = await self._credentials.list_credentials()
        logger.info("password_migration_fetched total=%s", len(records))

        no_password: list[CredentialRecord] = []
        already_hashed: list[CredentialRecord] = []
        to_migrate: list[CredentialRecord] = []
        for record in records:
            if not record.password_hash:
                logger.warning(
                    "password_migration_skipped_no_password credential_id=%s email=%s",
                    record.credential_id,
                    record.email,
                )
                no_password.append(record)
            elif self._password_hasher.is_password_hash(record.password_hash):
                already_hashed.append(record)
            else:
                to_migrate.append(record)

        return CredentialClassification(
            total=len(records),
            no_password=tuple(no_password),
            already_hashed=tuple(already_hashed),
            to_migrate=tuple(to_migrate),
        )

    async def dry_run(self) -> PasswordMigrationReport:
        """Report what a real run would migrate without writing anything."""

        classification = await self.classify()
        logger.info(
            "password_migration_dry_run total=%s already_hashed=%s to_migrate=%s no_password=%s",
            classification.total,
            len(classification.already_hashed),
            len(classification.to_migrate),
            len(classification.no_password),
        )
        return _build_report(classification, dry_run=True, results=())

    async def migrate(self) -> PasswordMigrationReport:
        """Rehash every plaintext credential; per-record failures are reported, not raised."""

        classification = await self.classify()
        if not classification.to_migrate:
            logger.info(
                "password_migration_nothing_to_do total=%s already_hashed=%s",
                classification.total,
                len(classification.already_hashed),
            )
            return _build_report(classification, dry_run=False, results=())

        pending = classification.to_migrate
        logger.info(
            "password_migration_started to_migrate=%s batch_size=%s",
            len(pending),
            self._batch_size,
        )

        results: list[_CredentialMigrationResult] = []
        for batch_number, start in enumerate(range(0, len(pending), self._batch_size), start=1):
            batch = pending[start : start + self._batch_size]
            logger.info(
                "password_migration_batch_started batch=%s size=%s",
                batch_number,
                len(batch),
            )
            batch_results = await self._migrate_batch(batch)
            results.extend(batch_results)
            logger.info(
                "password_migration_batch_completed batch=%s migrated=%s failed=%s",
                batch_number,
                sum(1 for result in batch_results if result.error is None),
                sum(1 for result in batch_results if result.error is not None),
            )

        report = _build_report(classification, dry_run=False, results=results)
        logger.info(
            "password_migration_completed migrated=%s failed=%s already_hashed=%s total=%s",
            report.migrated,
            report.failed,
            report.already_hashed,
            report.total_users,
        )
        return report

    async def _migrate_batch(
        self,
        batch: Sequence[CredentialRecord],
    ) -> list[_CredentialMigrationResult]:
        settled = await asyncio.gather(
            *(self._migrate_one(record) for record in batch),
            return_exceptions=True,
        )
        results: list[_CredentialMigrationResult] = []
        for record, outcome in zip(batch, settled, strict=True):
            if isinstance(outcome, BaseException):
                results.append(_CredentialMigrationResult(record=record, error=_describe(outcome)))
            else:
                results.append(outcome)
        return results

    async def _migrate_one(self, record: CredentialRecord) -> _CredentialMigrationResult:
        plaintext = record.password_hash or ""
        try:
            new_hash = await asyncio.to_thread(self._password_hasher.hash_password, plaintext)
            await self._credentials.update_password_hash(
                credential_id=record.credential_id,
                password_hash=new_hash,
            )
        except Exception as error:  # noqa: BLE001
            logger.warning(
                "password_migration_record_failed credential_id=%s email=%s error=%s",
                record.credential_id,
                record.email,
                _describe(error),
            )
            return _CredentialMigrationResult(record=record, error=_describe(error))

        logger.debug(
            "password_migration_record_ok credential_id=%s email=%s",
            record.credential_id,
            record.email,
        )
        return _CredentialMigrationResult(record=record, error=None)


def _build_report(
    classification: CredentialClassification,
    *,
    dry_run: bool,
    results: Sequence[_CredentialMigrationResult],
) -> PasswordMigrationReport:
    failures = tuple(
        MigrationFailure(
            credential_id=result.record.credential_id,
            email=result.record.email,
            error=result.error,
        )
        for result in results
        if result.error is not None
    )
    return PasswordMigrationReport(
        dry_run=dry_run,
        total_users=classification.total,
        already_hashed=len(classification.already_hashed),
        no_password=len(classification.no_password),
        migrated=len(results) - len(failures),
        failed=len(failures),
        pending_emails=tuple(record.email for record in classification.to_migrate),
        failures=failures,
    )


def _describe(error: BaseException) -> str:
    message = str(error)
    return message or type(error).__name__
