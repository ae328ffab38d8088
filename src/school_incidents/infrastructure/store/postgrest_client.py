"""Record store adapter for hosted PostgREST (Supabase REST) table endpoints."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from school_incidents.application.ports.record_store_port import (
    RecordStorePort,
    StoreError,
    StoreFilters,
    StoreRow,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000


@dataclass(frozen=True)
class StoreHttpResponse:
    """Normalized HTTP response data returned by transport implementations."""

    status_code: int
    body_bytes: bytes


class StoreHttpTransportPort(Protocol):
    """Transport protocol used by the PostgREST adapter."""

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> StoreHttpResponse:
        """Execute one HTTP request and return normalized response data."""


class UrllibStoreHttpTransport:
    """urllib-based async transport running each request in a worker thread."""

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> StoreHttpResponse:
        return await asyncio.to_thread(
            self._request_sync,
            method=method,
            url=url,
            headers=headers,
            body=body,
            timeout_seconds=timeout_seconds,
        )

    def _request_sync(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> StoreHttpResponse:
        request = Request(url=url, data=body, headers=headers, method=method)
        try:
            with urlopen(request, timeout=timeout_seconds) as response:
                return StoreHttpResponse(
                    status_code=int(response.getcode()),
                    body_bytes=response.read(),
                )
        except HTTPError as error:
            return StoreHttpResponse(status_code=int(error.code), body_bytes=error.read())
        except URLError as error:
            raise StoreError(f"transport connection failure: {error}") from error


class PostgrestRecordStore(RecordStorePort):
    """Table store client speaking the PostgREST dialect under ``/rest/v1``.

    The service key is sent both as ``apikey`` and as a bearer token, which is
    what the hosted gateway expects for service-role access.
    """

    def __init__(
        self,
        *,
        base_url: str,
        service_key: str,
        transport: StoreHttpTransportPort | None = None,
        timeout_seconds: float = 30.0,
        page_size: int = DEFAULT_PAGE_SIZE,
        order_column: str = "id",
    ) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self._base_url = base_url.rstrip("/")
        self._service_key = service_key
        self._transport = transport or UrllibStoreHttpTransport()
        self._timeout_seconds = timeout_seconds
        self._page_size = page_size
        self._order_column = order_column

    async def fetch_rows(
        self,
        table: str,
        *,
        columns: Sequence[str],
        filters: StoreFilters | None = None,
    ) -> list[StoreRow]:
        """Return all matching rows, following limit/offset pages until an empty page.

        The server may cap rows per response below ``page_size``, so the offset
        advances by the rows actually received.
        """

        rows: list[StoreRow] = []
        offset = 0
        while True:
            query: list[tuple[str, str]] = [("select", ",".join(columns))]
            query.extend(_filter_params(filters or {}))
            query.extend(
                [
                    ("order", f"{self._order_column}.asc"),
                    ("limit", str(self._page_size)),
                    ("offset", str(offset)),
                ]
            )
            page = await self._request_rows(
                operation=f"fetch_rows:{table}",
                method="GET",
                table=table,
                query=query,
                payload=None,
            )
            if not page:
                break
            rows.extend(page)
            offset += len(page)

        logger.debug("store_rows_fetched table=%s rows=%s", table, len(rows))
        return rows

    async def update_rows(
        self,
        table: str,
        *,
        filters: StoreFilters,
        patch: Mapping[str, Any],
    ) -> list[StoreRow]:
        """Patch matching rows and fail when nothing matched."""

        if not filters:
            raise ValueError("update_rows requires at least one filter")

        updated = await self._request_rows(
            operation=f"update_rows:{table}",
            method="PATCH",
            table=table,
            query=_filter_params(filters),
            payload=dict(patch),
            prefer="return=representation",
        )
        if not updated:
            raise StoreError(f"update_rows:{table} matched no rows")
        return updated

    async def insert_rows(
        self,
        table: str,
        *,
        rows: Sequence[Mapping[str, Any]],
    ) -> list[StoreRow]:
        """Insert rows in one request and return the persisted representation."""

        if not rows:
            return []
        return await self._request_rows(
            operation=f"insert_rows:{table}",
            method="POST",
            table=table,
            query=[],
            payload=[dict(row) for row in rows],
            prefer="return=representation",
        )

    async def _request_rows(
        self,
        *,
        operation: str,
        method: str,
        table: str,
        query: list[tuple[str, str]],
        payload: dict[str, Any] | list[dict[str, Any]] | None,
        prefer: str | None = None,
    ) -> list[StoreRow]:
        headers = {
            "apikey": self._service_key,
            "Authorization": f"Bearer {self._service_key}",
            "Accept": "application/json",
        }
        body: bytes | None = None
        if payload is not None:
            body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
            headers["Content-Type"] = "application/json"
        if prefer is not None:
            headers["Prefer"] = prefer

        url = f"{self._base_url}/rest/v1/{quote(table, safe='')}"
        if query:
            url = f"{url}?{urlencode(query)}"

        try:
            response = await self._transport.request(
                method=method,
                url=url,
                headers=headers,
                body=body,
                timeout_seconds=self._timeout_seconds,
            )
        except StoreError:
            raise
        except Exception as error:  # noqa: BLE001
            raise StoreError(f"{operation} transport failure") from error

        if response.status_code < 200 or response.status_code >= 300:
            details = _decode_error_payload(response.body_bytes)
            raise StoreError(f"{operation} failed with status {response.status_code}: {details}")

        if not response.body_bytes.strip():
            return []
        try:
            decoded = json.loads(response.body_bytes.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as error:
            raise StoreError(f"{operation} returned invalid JSON payload") from error
        if not isinstance(decoded, list) or not all(isinstance(row, dict) for row in decoded):
            raise StoreError(f"{operation} returned non-row JSON payload")
        return decoded


def _filter_params(filters: StoreFilters) -> list[tuple[str, str]]:
    return [(column, f"eq.{_format_filter_value(value)}") for column, value in filters.items()]


def _format_filter_value(value: str | int | bool) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _decode_error_payload(payload: bytes) -> str:
    if not payload:
        return "empty response body"
    try:
        decoded = payload.decode("utf-8")
    except UnicodeDecodeError:
        return "<binary>"
    return decoded[:200]
