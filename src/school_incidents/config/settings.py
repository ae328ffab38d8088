"""Runtime settings loaded from environment variables."""

from functools import lru_cache
from typing import Annotated

from pydantic import AliasChoices, Field, HttpUrl, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

NonEmptyStr = Annotated[str, Field(min_length=1)]
PositiveFloat = Annotated[float, Field(gt=0.0)]
PositiveInt = Annotated[int, Field(gt=0)]
BcryptRounds = Annotated[int, Field(ge=4, le=31)]

_MISSING_ERROR_TYPES = frozenset({"missing", "string_too_short"})


class SettingsError(ValueError):
    """Raised when required runtime settings are absent or invalid."""


class Settings(BaseSettings):
    """Environment-driven settings for the credential tooling."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    store_url: HttpUrl = Field(
        validation_alias=AliasChoices("STORE_URL", "SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL"),
    )
    store_service_key: NonEmptyStr = Field(
        validation_alias=AliasChoices("STORE_SERVICE_KEY", "SUPABASE_SERVICE_ROLE_KEY"),
    )
    store_timeout_seconds: PositiveFloat = Field(
        default=30.0,
        validation_alias="STORE_TIMEOUT_SECONDS",
    )
    credentials_table: NonEmptyStr = Field(
        default="users",
        validation_alias="CREDENTIALS_TABLE",
    )
    password_hash_rounds: BcryptRounds = Field(
        default=12,
        validation_alias="PASSWORD_HASH_ROUNDS",
    )
    migration_batch_size: PositiveInt = Field(
        default=50,
        validation_alias="MIGRATION_BATCH_SIZE",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Load and cache settings, failing fast with the names of missing variables."""

    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as error:
        raise SettingsError(describe_settings_error(error)) from error


def describe_settings_error(error: ValidationError) -> str:
    """Render one settings validation error as a single operator-facing line."""

    missing: list[str] = []
    invalid: list[str] = []
    for detail in error.errors():
        name = ".".join(str(part) for part in detail["loc"]) or "<root>"
        bucket = missing if detail["type"] in _MISSING_ERROR_TYPES else invalid
        if name not in bucket:
            bucket.append(name)

    parts: list[str] = []
    if missing:
        parts.append(f"missing required settings: {', '.join(missing)}")
    if invalid:
        parts.append(f"invalid settings: {', '.join(invalid)}")
    return "; ".join(parts) or "invalid settings"
