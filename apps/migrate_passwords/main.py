"""Password migration entrypoint.

Usage::

    python -m apps.migrate_passwords.main [--dry-run]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from typing import TextIO

from school_incidents.application.ports.record_store_port import RecordStorePort, StoreError
from school_incidents.application.services.password_migration_service import (
    PasswordMigrationReport,
    PasswordMigrationService,
)
from school_incidents.config.settings import Settings, SettingsError, load_settings
from school_incidents.infrastructure.logging import configure_logging
from school_incidents.infrastructure.security.password_hasher import BcryptPasswordHasher
from school_incidents.infrastructure.store.credential_repository import StoreCredentialRepository
from school_incidents.infrastructure.store.postgrest_client import PostgrestRecordStore

logger = logging.getLogger(__name__)

_RULE = "=" * 60


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Replace stored plaintext passwords with bcrypt hashes.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Classify stored passwords and list pending users without writing",
    )
    return parser.parse_args(argv)


def build_migration_service(
    *,
    settings: Settings,
    store: RecordStorePort | None = None,
) -> PasswordMigrationService:
    """Compose the migration service from settings and an explicit store handle."""

    runtime_store = store or PostgrestRecordStore(
        base_url=str(settings.store_url),
        service_key=settings.store_service_key,
        timeout_seconds=settings.store_timeout_seconds,
    )
    return PasswordMigrationService(
        credentials=StoreCredentialRepository(runtime_store, table=settings.credentials_table),
        password_hasher=BcryptPasswordHasher(rounds=settings.password_hash_rounds),
        batch_size=settings.migration_batch_size,
    )


def render_report(report: PasswordMigrationReport) -> str:
    """Render one migration report as the console summary."""

    if report.dry_run:
        lines = [
            "DRY RUN - no changes were made",
            f"Total users: {report.total_users}",
            f"Already hashed: {report.already_hashed}",
            f"Need migration: {len(report.pending_emails)}",
            f"Without password: {report.no_password}",
        ]
        if report.pending_emails:
            lines.append("")
            lines.append("Users that would be migrated:")
            lines.extend(
                f"  {index}. {email}" for index, email in enumerate(report.pending_emails, start=1)
            )
        return "\n".join(lines)

    lines = [
        _RULE,
        "PASSWORD MIGRATION SUMMARY",
        _RULE,
        f"Migrated: {report.migrated}",
        f"Failed: {report.failed}",
        f"Already hashed: {report.already_hashed}",
        f"Without password: {report.no_password}",
        f"Total users: {report.total_users}",
    ]
    if report.failures:
        lines.append("")
        lines.append("Failures:")
        lines.extend(f"  - {failure.email}: {failure.error}" for failure in report.failures)
    lines.append(_RULE)
    if report.failed:
        lines.append("Migration completed with errors; re-run after reviewing the failures above.")
    elif report.migrated:
        lines.append("Migration completed successfully.")
    else:
        lines.append("All passwords are already hashed. Nothing to do.")
    return "\n".join(lines)


async def run_password_migration(
    *,
    settings: Settings,
    dry_run: bool,
    store: RecordStorePort | None = None,
    stdout: TextIO | None = None,
) -> int:
    """Run one dry or real migration, print its summary and return the exit code."""

    output = stdout or sys.stdout
    service = build_migration_service(settings=settings, store=store)
    try:
        report = await (service.dry_run() if dry_run else service.migrate())
    except StoreError as error:
        logger.error("password_migration_aborted error=%s", error)
        return 1

    print(render_report(report), file=output)
    return report.exit_code


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, load settings and run the password migration."""

    args = parse_args(argv)
    try:
        settings = load_settings()
    except SettingsError as error:
        configure_logging(level="INFO")
        logger.error("password_migration_config_invalid error=%s", error)
        return 1

    configure_logging(level=settings.log_level)
    logger.info(
        "password_migration_starting dry_run=%s batch_size=%s rounds=%s",
        args.dry_run,
        settings.migration_batch_size,
        settings.password_hash_rounds,
    )
    return asyncio.run(run_password_migration(settings=settings, dry_run=args.dry_run))


if __name__ == "__main__":
    raise SystemExit(main())
