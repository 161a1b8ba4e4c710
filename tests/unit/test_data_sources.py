"""Tests for festival data sources."""

import json
from pathlib import Path

import httpx
import pytest

from festival_finder.modules.catalog.domain.exceptions import DataLoadError
from festival_finder.modules.catalog.infrastructure.data_sources import (
    HttpFestivalSource,
    InMemoryFestivalSource,
    JsonFileFestivalSource,
    records_from_payload,
)

pytestmark = pytest.mark.anyio

CATALOG_URL = "https://catalog.example.com/festivals.json"


def _write_snapshot(path: Path, payload) -> None:
    path.write_text(json.dumps(payload), encoding="utf-8")


class TestPayloadShapes:
    def test_list_payload(self) -> None:
        assert records_from_payload([{"name": "A"}]) == [{"name": "A"}]

    def test_wrapped_payload(self) -> None:
        assert records_from_payload({"festivals": [{"name": "A"}]}) == [
            {"name": "A"}
        ]

    def test_id_keyed_payload(self) -> None:
        records = records_from_payload({"abc": {"name": "A"}, "def": {"name": "B"}})
        assert records == [{"name": "A", "id": "abc"}, {"name": "B", "id": "def"}]

    def test_scalar_payload_rejected(self) -> None:
        with pytest.raises(DataLoadError):
            records_from_payload("festivals")


async def test_in_memory_source_returns_copy() -> None:
    records = [{"name": "A"}]
    source = InMemoryFestivalSource(records)

    fetched = await source.fetch_all_records()
    fetched.append({"name": "B"})

    assert await source.fetch_all_records() == [{"name": "A"}]


async def test_json_file_source(tmp_path: Path) -> None:
    snapshot = tmp_path / "festivals.json"
    _write_snapshot(snapshot, {"festivals": [{"name": "Øya"}]})

    records = await JsonFileFestivalSource(snapshot).fetch_all_records()

    assert records == [{"name": "Øya"}]


async def test_json_file_source_missing_file(tmp_path: Path) -> None:
    with pytest.raises(DataLoadError):
        await JsonFileFestivalSource(tmp_path / "missing.json").fetch_all_records()


async def test_json_file_source_invalid_json(tmp_path: Path) -> None:
    snapshot = tmp_path / "festivals.json"
    snapshot.write_text("{not json", encoding="utf-8")

    with pytest.raises(DataLoadError):
        await JsonFileFestivalSource(snapshot).fetch_all_records()


async def test_bundled_snapshot_is_loadable() -> None:
    records = await JsonFileFestivalSource().fetch_all_records()
    assert len(records) >= 5


class TestHttpFestivalSource:
    async def test_fetch_success(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == CATALOG_URL
            return httpx.Response(200, json=[{"name": "Øya"}])

        source = HttpFestivalSource(
            url=CATALOG_URL, transport=httpx.MockTransport(handler)
        )

        assert await source.fetch_all_records() == [{"name": "Øya"}]

    async def test_server_errors_are_retried(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls < 3:
                return httpx.Response(503)
            return httpx.Response(200, json={"festivals": [{"name": "Øya"}]})

        source = HttpFestivalSource(
            url=CATALOG_URL,
            max_retries=3,
            retry_wait_max_sec=0,
            transport=httpx.MockTransport(handler),
        )

        assert await source.fetch_all_records() == [{"name": "Øya"}]
        assert calls == 3

    async def test_client_errors_are_not_retried(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(404)

        source = HttpFestivalSource(
            url=CATALOG_URL,
            max_retries=3,
            retry_wait_max_sec=0,
            transport=httpx.MockTransport(handler),
        )

        with pytest.raises(DataLoadError):
            await source.fetch_all_records()
        assert calls == 1

    async def test_connection_errors_exhaust_retries(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            raise httpx.ConnectError("network down", request=request)

        source = HttpFestivalSource(
            url=CATALOG_URL,
            max_retries=2,
            retry_wait_max_sec=0,
            transport=httpx.MockTransport(handler),
        )

        with pytest.raises(DataLoadError):
            await source.fetch_all_records()
        assert calls == 2

    async def test_falls_back_to_snapshot(self, tmp_path: Path) -> None:
        snapshot = tmp_path / "festivals.json"
        _write_snapshot(snapshot, [{"name": "Snapshot fest"}])

        source = HttpFestivalSource(
            url=CATALOG_URL,
            max_retries=1,
            snapshot=JsonFileFestivalSource(snapshot),
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )

        assert await source.fetch_all_records() == [{"name": "Snapshot fest"}]

    async def test_invalid_json_body(self) -> None:
        source = HttpFestivalSource(
            url=CATALOG_URL,
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, content=b"<html>")
            ),
        )

        with pytest.raises(DataLoadError):
            await source.fetch_all_records()

    def test_requires_url(self, monkeypatch) -> None:
        from festival_finder.core.config import settings

        monkeypatch.setattr(settings, "CATALOG_URL", None)
        with pytest.raises(ValueError):
            HttpFestivalSource()
