"""Port for the hosted table store reached through simple key/column queries."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

StoreRow = dict[str, Any]
StoreFilters = Mapping[str, str | int | bool]


class StoreError(RuntimeError):
    """Raised when the record store rejects or fails one read or write."""


class RecordStorePort(Protocol):
    """Table-oriented record store contract."""

    async def fetch_rows(
        self,
        table: str,
        *,
        columns: Sequence[str],
        filters: StoreFilters | None = None,
    ) -> list[StoreRow]:
        """Return every row of ``table`` matching equality ``filters``."""

    async def update_rows(
        self,
        table: str,
        *,
        filters: StoreFilters,
        patch: Mapping[str, Any],
    ) -> list[StoreRow]:
        """Apply ``patch`` to rows matching ``filters`` and return updated rows."""

    async def insert_rows(
        self,
        table: str,
        *,
        rows: Sequence[Mapping[str, Any]],
    ) -> list[StoreRow]:
        """Insert ``rows`` and return them as persisted."""
