"""Record store backends: the remote Airtable base and an in-process store."""
import asyncio
import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol
from urllib.parse import quote as url_quote

import httpx
import structlog

from tablebook.app.core.errors import RepositoryUnavailable
from tablebook.app.db.filters import RecordFilter


logger = structlog.get_logger()

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


@dataclass(frozen=True)
class StoreRecord:
    id: str
    fields: dict[str, Any] = field(default_factory=dict)
    created_time: str = ""


class RecordStore(Protocol):
    async def query(self, table: str, record_filter: RecordFilter | None = None) -> list[StoreRecord]: ...

    async def get(self, table: str, record_id: str) -> StoreRecord | None: ...

    async def insert(self, table: str, fields: dict[str, Any]) -> StoreRecord: ...

    async def patch(self, table: str, record_id: str, fields: dict[str, Any]) -> StoreRecord: ...

    async def ping(self, table: str) -> None: ...

    async def close(self) -> None: ...


def _record(raw: dict[str, Any]) -> StoreRecord:
    return StoreRecord(
        id=str(raw["id"]),
        fields=dict(raw.get("fields") or {}),
        created_time=str(raw.get("createdTime") or ""),
    )


class AirtableStore:
    """Airtable REST client.

    Reads are retried on transport errors, 429 and 5xx; writes go out exactly
    once, since a timed-out insert may or may not have landed.
    """

    def __init__(
        self,
        *,
        token: str,
        base_id: str,
        api_url: str = "https://api.airtable.com/v0",
        timeout: float = 10.0,
        read_retries: int = 2,
        backoff_seconds: float = 0.25,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token = token
        self._base_id = base_id
        self._api_url = api_url.rstrip("/")
        self._read_retries = max(0, read_retries)
        self._backoff_seconds = backoff_seconds
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def is_configured(self) -> bool:
        return bool(self._token and self._base_id)

    def _url(self, table: str, record_id: str | None = None) -> str:
        url = f"{self._api_url}/{self._base_id}/{url_quote(table, safe='')}"
        if record_id is not None:
            url += f"/{url_quote(record_id, safe='')}"
        return url

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        retries: int = 0,
        allow_missing: bool = False,
    ) -> httpx.Response | None:
        if not self.is_configured():
            raise RepositoryUnavailable("Airtable credentials not configured")

        for attempt in itertools.count():
            try:
                response = await self._client.request(method, url, params=params, json=json, headers=self._headers())
            except httpx.TransportError as exc:
                if attempt < retries:
                    logger.warning("Store request failed, retrying", method=method, attempt=attempt, error=str(exc))
                    await asyncio.sleep(self._backoff_seconds * (attempt + 1))
                    continue
                logger.error("Store request failed", method=method, error=str(exc))
                raise RepositoryUnavailable("Record store unreachable", write_outcome_unknown=method != "GET") from exc

            if allow_missing and response.status_code == 404:
                return None
            if response.status_code in RETRYABLE_STATUS and attempt < retries:
                logger.warning("Store returned retryable status", method=method, status=response.status_code, attempt=attempt)
                await asyncio.sleep(self._backoff_seconds * (attempt + 1))
                continue
            if not response.is_success:
                logger.error(
                    "Store returned error",
                    method=method,
                    status=response.status_code,
                    detail=response.text[:500] if response.text else None,
                )
                raise RepositoryUnavailable(f"Record store error: {response.status_code}")
            return response
        raise AssertionError("unreachable")

    async def query(self, table: str, record_filter: RecordFilter | None = None) -> list[StoreRecord]:
        params: dict[str, Any] = {"pageSize": 100}
        if record_filter is not None:
            params["filterByFormula"] = record_filter.to_formula()

        records: list[StoreRecord] = []
        while True:
            response = await self._send("GET", self._url(table), params=params, retries=self._read_retries)
            payload = response.json()
            records.extend(_record(raw) for raw in payload.get("records") or [])
            offset = payload.get("offset")
            if not offset:
                return records
            params = {**params, "offset": offset}

    async def get(self, table: str, record_id: str) -> StoreRecord | None:
        response = await self._send("GET", self._url(table, record_id), retries=self._read_retries, allow_missing=True)
        if response is None:
            return None
        return _record(response.json())

    async def insert(self, table: str, fields: dict[str, Any]) -> StoreRecord:
        response = await self._send("POST", self._url(table), json={"fields": fields, "typecast": True})
        return _record(response.json())

    async def patch(self, table: str, record_id: str, fields: dict[str, Any]) -> StoreRecord:
        response = await self._send("PATCH", self._url(table, record_id), json={"fields": fields, "typecast": True})
        return _record(response.json())

    async def ping(self, table: str) -> None:
        await self._send("GET", self._url(table), params={"maxRecords": 1})

    async def close(self) -> None:
        await self._client.aclose()


class MemoryStore:
    """In-process store with the same surface as AirtableStore."""

    def __init__(self) -> None:
        self._tables: dict[str, list[StoreRecord]] = {}
        self._ids = itertools.count(1)

    def add(self, table: str, fields: dict[str, Any], *, created_time: str | None = None) -> StoreRecord:
        record = StoreRecord(
            id=f"rec{next(self._ids):014d}",
            fields=dict(fields),
            created_time=created_time or datetime.now(timezone.utc).isoformat(timespec="microseconds"),
        )
        self._tables.setdefault(table, []).append(record)
        return record

    def records(self, table: str) -> list[StoreRecord]:
        return list(self._tables.get(table, []))

    async def query(self, table: str, record_filter: RecordFilter | None = None) -> list[StoreRecord]:
        return [
            StoreRecord(r.id, dict(r.fields), r.created_time)
            for r in self._tables.get(table, [])
            if record_filter is None or record_filter.matches(r.fields)
        ]

    async def get(self, table: str, record_id: str) -> StoreRecord | None:
        for record in self._tables.get(table, []):
            if record.id == record_id:
                return StoreRecord(record.id, dict(record.fields), record.created_time)
        return None

    async def insert(self, table: str, fields: dict[str, Any]) -> StoreRecord:
        return self.add(table, fields)

    async def patch(self, table: str, record_id: str, fields: dict[str, Any]) -> StoreRecord:
        rows = self._tables.get(table, [])
        for index, record in enumerate(rows):
            if record.id == record_id:
                rows[index] = StoreRecord(record.id, {**record.fields, **fields}, record.created_time)
                return rows[index]
        raise RepositoryUnavailable(f"Record {record_id} not found in {table}")

    async def ping(self, table: str) -> None:
        return None

    async def close(self) -> None:
        return None
