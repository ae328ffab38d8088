from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from pydantic import ValidationError

from school_incidents.config.settings import (
    Settings,
    SettingsError,
    describe_settings_error,
    load_settings,
)

REQUIRED_ENV = {
    "STORE_URL": "https://project.supabase.co",
    "STORE_SERVICE_KEY": "service-role-key",
}

_ALL_ENV = (
    "STORE_URL",
    "SUPABASE_URL",
    "NEXT_PUBLIC_SUPABASE_URL",
    "STORE_SERVICE_KEY",
    "SUPABASE_SERVICE_ROLE_KEY",
    "STORE_TIMEOUT_SECONDS",
    "CREDENTIALS_TABLE",
    "PASSWORD_HASH_ROUNDS",
    "MIGRATION_BATCH_SIZE",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for key in _ALL_ENV:
        monkeypatch.delenv(key, raising=False)
    load_settings.cache_clear()
    yield
    load_settings.cache_clear()


def _set_required_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key, value in REQUIRED_ENV.items():
        monkeypatch.setenv(key, value)


def test_defaults_are_deterministic(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_required_env(monkeypatch)

    settings = Settings(_env_file=None)

    assert str(settings.store_url) == "https://project.supabase.co/"
    assert settings.store_service_key == "service-role-key"
    assert settings.store_timeout_seconds == 30.0
    assert settings.credentials_table == "users"
    assert settings.password_hash_rounds == 12
    assert settings.migration_batch_size == 50
    assert settings.log_level == "INFO"


def test_supabase_variable_names_are_accepted(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NEXT_PUBLIC_SUPABASE_URL", "https://legacy.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "legacy-service-key")

    settings = Settings(_env_file=None)

    assert str(settings.store_url) == "https://legacy.supabase.co/"
    assert settings.store_service_key == "legacy-service-key"


def test_missing_store_settings_are_listed_by_name() -> None:
    with pytest.raises(ValidationError) as exc_info:
        Settings(_env_file=None)

    message = describe_settings_error(exc_info.value)

    assert message.startswith("missing required settings: ")
    assert "STORE_URL" in message
    assert "STORE_SERVICE_KEY" in message


def test_blank_service_key_counts_as_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_required_env(monkeypatch)
    monkeypatch.setenv("STORE_SERVICE_KEY", "")

    with pytest.raises(ValidationError) as exc_info:
        Settings(_env_file=None)

    assert describe_settings_error(exc_info.value) == (
        "missing required settings: STORE_SERVICE_KEY"
    )


@pytest.mark.parametrize(
    ("key", "value"),
    [
        ("PASSWORD_HASH_ROUNDS", "3"),
        ("PASSWORD_HASH_ROUNDS", "32"),
        ("MIGRATION_BATCH_SIZE", "0"),
        ("STORE_URL", "not-a-url"),
    ],
)
def test_out_of_range_values_raise_validation_error(
    monkeypatch: pytest.MonkeyPatch,
    key: str,
    value: str,
) -> None:
    _set_required_env(monkeypatch)
    monkeypatch.setenv(key, value)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_load_settings_fails_fast_with_settings_error(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    monkeypatch.chdir(tmp_path)

    with pytest.raises(SettingsError, match="missing required settings"):
        load_settings()


def test_load_settings_is_cached(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    _set_required_env(monkeypatch)

    assert load_settings() is load_settings()
