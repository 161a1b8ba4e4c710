"""Tests for DiscoverySession and its wiring."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from festival_finder.core.config import Settings
from festival_finder.modules.catalog.application.pagination import PageWindow
from festival_finder.modules.catalog.application.store import CatalogStore
from festival_finder.modules.catalog.domain.entities import SortKey
from festival_finder.modules.catalog.domain.exceptions import DataLoadError
from festival_finder.modules.catalog.infrastructure.data_sources import (
    InMemoryFestivalSource,
)
from festival_finder.modules.discovery.application.dependencies import (
    build_discovery_session,
)
from festival_finder.modules.discovery.application.session import DiscoverySession
from festival_finder.modules.geolocation.application.provider import (
    GeolocationProvider,
)
from festival_finder.modules.geolocation.domain.entities import (
    Coordinates,
    LocationError,
    LocationErrorKind,
    PermissionState,
)
from festival_finder.modules.geolocation.infrastructure.location_cache import (
    InMemoryLocationCache,
)

pytestmark = pytest.mark.anyio

MOLDE = Coordinates(latitude=62.73, longitude=7.16)


def _provider(host) -> GeolocationProvider:
    return GeolocationProvider(
        host,
        InMemoryLocationCache(),
        high_accuracy_timeout_sec=0.01,
        low_accuracy_timeout_sec=0.02,
    )


def _names(session: DiscoverySession) -> list[str]:
    return [f.name for f in session.visible]


@pytest.fixture
def session(sample_raw_records, fake_host) -> DiscoverySession:
    store = CatalogStore(InMemoryFestivalSource(sample_raw_records))
    return DiscoverySession(store, _provider(fake_host))


class TestStart:
    async def test_start_loads_and_exposes_first_page(
        self, session: DiscoverySession
    ) -> None:
        result = await session.start()

        assert result.success
        assert session.window.value == PageWindow(size=4, has_more=False)
        assert _names(session)[0] == "Øya Festival"
        assert session.permission.value is PermissionState.PROMPT

    async def test_catalog_failure_leaves_location_working(
        self, host_factory
    ) -> None:
        source = MagicMock()
        source.fetch_all_records = AsyncMock(side_effect=DataLoadError("offline"))
        host = host_factory(outcomes={"high_accuracy": MOLDE})
        session = DiscoverySession(CatalogStore(source), _provider(host))

        result = await session.start()
        location = await session.request_location()

        assert not result.success
        assert session.catalog_error.value is not None
        assert session.view.value.items == ()
        assert location.is_success
        assert session.location.value == MOLDE
        session.close()

    async def test_location_failure_leaves_catalog_working(
        self, sample_raw_records, host_factory
    ) -> None:
        host = host_factory(
            outcomes={
                "high_accuracy": LocationError(LocationErrorKind.PERMISSION_DENIED)
            }
        )
        session = DiscoverySession(
            CatalogStore(InMemoryFestivalSource(sample_raw_records)), _provider(host)
        )
        await session.start()

        result = await session.request_location()
        session.set_sort_key(SortKey.DISTANCE)

        assert not result.is_success
        assert session.location_error.value is not None
        assert _names(session) == [
            "Bergenfest",
            "Moldejazz",
            "Øya Festival",
            "Trænafestivalen",
        ]

    async def test_provider_start_crash_is_contained(self, session) -> None:
        session.provider.start = AsyncMock(side_effect=RuntimeError("boom"))

        result = await session.start()

        assert result.success
        assert len(session.view.value) == 4

    async def test_retry_load(self, sample_raw_records, fake_host) -> None:
        source = MagicMock()
        source.fetch_all_records = AsyncMock(
            side_effect=[DataLoadError("offline"), list(sample_raw_records)]
        )
        session = DiscoverySession(CatalogStore(source), _provider(fake_host))

        await session.start()
        result = await session.retry_load()

        assert result.success
        assert session.catalog_error.value is None
        assert len(session.visible) == 4


class TestRenderingSurface:
    async def test_distance_sort_after_location(self, session, fake_host) -> None:
        await session.start()
        fake_host.outcomes["high_accuracy"] = MOLDE

        session.set_sort_key("distance")
        await session.request_location()

        assert _names(session)[0] == "Moldejazz"

    async def test_filters(self, session) -> None:
        await session.start()

        session.set_genre_filter("Indie")
        session.set_city_filter("bergen")

        assert _names(session) == ["Bergenfest"]

    async def test_query_string(self, session) -> None:
        await session.start()

        session.apply_query_string({"search": "rock", "sort": "location"})

        assert session.query_string() == {"search": "rock", "sort": "city"}
        assert _names(session) == ["Bergenfest", "Øya Festival"]

    async def test_enter_without_selection_searches(self, session) -> None:
        await session.start()
        session.update_suggestions("jazz")

        commit = session.handle_suggestion_key("Enter")

        assert commit.search_text == "jazz"
        assert session.query_params.value.search_text == "jazz"
        assert _names(session) == ["Moldejazz"]

    async def test_selecting_candidate_does_not_search(self, session) -> None:
        await session.start()
        session.update_suggestions("berg")
        session.hover_suggestion(0)

        commit = session.handle_suggestion_key("Enter")

        assert commit.festival.name == "Bergenfest"
        assert session.query_params.value.search_text == ""
        assert session.candidates.value == ()
        assert session.active_index.value == -1

    async def test_click_and_dismiss(self, session) -> None:
        await session.start()
        session.update_suggestions("o")

        session.dismiss_suggestions()
        assert session.candidates.value == ()

        session.update_suggestions("ø")
        assert session.select_suggestion(0).festival.name == "Øya Festival"

    async def test_paging_entry_points(self, fake_host) -> None:
        raw = [
            {"id": str(i), "name": f"Fest {i}", "dates": {"start": "2025-07-01"}}
            for i in range(20)
        ]
        session = DiscoverySession(
            CatalogStore(InMemoryFestivalSource(raw)), _provider(fake_host)
        )
        await session.start()

        assert session.window.value == PageWindow(size=9, has_more=True)
        assert await session.on_viewport_proximity(True)
        assert await session.grow_once()
        assert session.window.value == PageWindow(size=20, has_more=False)

        session.set_search_text("Fest 1")
        assert session.window.value == PageWindow(size=9, has_more=True)


class TestLifecycle:
    async def test_context_manager_closes(
        self, sample_raw_records, host_factory
    ) -> None:
        host = host_factory(permission=PermissionState.GRANTED)
        store = CatalogStore(InMemoryFestivalSource(sample_raw_records))

        async with DiscoverySession(store, _provider(host)) as session:
            assert session.provider.is_watching

        assert not session.provider.is_watching
        assert host.permission_subscribers == 0
        assert not session.view.has_handlers()

    async def test_close_is_idempotent(self, session) -> None:
        await session.start()
        session.close()
        session.close()

        assert not session.provider.is_watching


async def test_build_from_settings(tmp_path: Path) -> None:
    snapshot = tmp_path / "festivals.json"
    snapshot.write_text(
        '[{"id": "1", "name": "Øya", "dates": {"start": "2025-08-06"}},'
        ' {"id": "2", "name": "Bergenfest", "dates": {"start": "2025-06-11"}}]',
        encoding="utf-8",
    )
    config = Settings(
        CATALOG_SOURCE="file",
        CATALOG_SNAPSHOT_PATH=snapshot,
        GEO_IP_LOOKUP_ENABLED=False,
        LOCATION_CACHE_PATH=tmp_path / "location.json",
        PAGE_SIZE=1,
    )

    async with build_discovery_session(config) as session:
        assert session.window.value == PageWindow(size=1, has_more=True)
        assert session.permission.value is PermissionState.DENIED
