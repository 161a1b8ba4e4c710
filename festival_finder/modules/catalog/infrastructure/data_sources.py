"""Infrastructure adapters for the festival data collaborator."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import httpx
from loguru import logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from festival_finder.core.config import settings
from festival_finder.modules.catalog.domain.exceptions import DataLoadError
from festival_finder.modules.catalog.domain.repository import (
    FestivalDataSource,
    RawRecord,
)


def records_from_payload(payload: Any) -> list[RawRecord]:
    """Extract the raw record list from a collaborator payload.

    Accepted shapes: a list of records, ``{"festivals": [...]}``, or an
    id-keyed mapping as produced by document-store exports. Individual
    records are not validated here.
    """
    if isinstance(payload, dict):
        festivals = payload.get("festivals")
        if isinstance(festivals, list):
            payload = festivals
        else:
            payload = [
                {**value, "id": value.get("id") or key}
                if isinstance(value, dict)
                else value
                for key, value in payload.items()
            ]

    if not isinstance(payload, list):
        raise DataLoadError("festival payload must be a list or an object")
    return list(payload)


class InMemoryFestivalSource(FestivalDataSource):
    """Serve a fixed list of raw records."""

    def __init__(self, records: list[RawRecord]) -> None:
        self._records = records

    async def fetch_all_records(self) -> list[RawRecord]:
        return list(self._records)


class JsonFileFestivalSource(FestivalDataSource):
    """Load raw records from a JSON snapshot on disk."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or settings.CATALOG_SNAPSHOT_PATH

    async def fetch_all_records(self) -> list[RawRecord]:
        try:
            text = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
            payload = json.loads(text)
        except (OSError, json.JSONDecodeError) as exc:
            raise DataLoadError(f"cannot read snapshot {self.path}: {exc}") from exc
        return records_from_payload(payload)


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


class HttpFestivalSource(FestivalDataSource):
    """Fetch raw records from an HTTP endpoint with an optional snapshot fallback."""

    def __init__(
        self,
        *,
        url: str | None = None,
        timeout_sec: float | None = None,
        max_retries: int | None = None,
        retry_wait_max_sec: float = 8.0,
        snapshot: JsonFileFestivalSource | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        resolved_url = url or settings.CATALOG_URL
        if not resolved_url:
            raise ValueError("HttpFestivalSource requires a catalog URL")
        self.url = resolved_url
        self.timeout_sec = timeout_sec or settings.CATALOG_FETCH_TIMEOUT_SEC
        self.max_retries = max_retries or settings.CATALOG_FETCH_MAX_RETRIES
        self.retry_wait_max_sec = retry_wait_max_sec
        self.snapshot = snapshot
        self._transport = transport
        self._logger = logger.bind(service="HttpFestivalSource")

    async def fetch_all_records(self) -> list[RawRecord]:
        """Fetch remotely, then fall back to the snapshot when configured."""
        try:
            payload = await self._fetch_remote()
            return records_from_payload(payload)
        except (httpx.HTTPError, ValueError, DataLoadError) as exc:
            self._logger.warning(f"Failed to load festivals remotely: {exc}")
            if self.snapshot is None:
                if isinstance(exc, DataLoadError):
                    raise
                raise DataLoadError(str(exc)) from exc

        records = await self.snapshot.fetch_all_records()
        self._logger.info(f"Loaded {len(records)} festivals from snapshot")
        return records

    async def _fetch_remote(self) -> Any:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=0.5, max=self.retry_wait_max_sec),
            reraise=True,
        ):
            with attempt:
                async with httpx.AsyncClient(
                    timeout=self.timeout_sec,
                    transport=self._transport,
                ) as client:
                    response = await client.get(
                        self.url,
                        headers={"Accept": "application/json"},
                    )
                    response.raise_for_status()
                    return response.json()
        raise DataLoadError("festival fetch exhausted retries")
