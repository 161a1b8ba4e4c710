"""
pytest configuration and shared fixtures.

Test layout:
- unit/: unit tests, no network and no real geolocation host

Usage:
    # Run every test
    pytest

    # Unit tests only
    pytest tests/unit/
"""

import asyncio
from collections.abc import Callable, Hashable
from datetime import UTC, datetime
from typing import Any

import pytest

from festival_finder.modules.catalog.domain.entities import (
    DateRange,
    Festival,
    Location,
    Price,
)
from festival_finder.modules.geolocation.domain.entities import (
    Coordinates,
    LocationError,
    PermissionState,
    PositionOptions,
)

# ============================================
# Event loop
# ============================================


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


# ============================================
# Domain object fixtures
# ============================================


@pytest.fixture
def festival_factory() -> Callable[..., Festival]:
    """Build Festival entities with sensible defaults.

    Usage:
        def test_something(festival_factory):
            oslo = festival_factory(name="Øya", city="Oslo", popularity=90)
    """
    counter = iter(range(1, 10_000))

    def _make(
        *,
        id: str | None = None,
        name: str | None = None,
        city: str = "Oslo",
        venue: str = "",
        coordinates: Coordinates | None = None,
        start: datetime | None = None,
        full_pass: float = 1000.0,
        genres: tuple[str, ...] = (),
        popularity: float = 50.0,
    ) -> Festival:
        n = next(counter)
        start = start or datetime(2025, 7, 1, tzinfo=UTC)
        return Festival(
            id=id or f"fest-{n}",
            name=name or f"Festival {n}",
            location=Location(venue=venue, city=city, coordinates=coordinates),
            dates=DateRange(start=start, end=start),
            price=Price(day_pass=full_pass / 2, full_pass=full_pass),
            genres=genres,
            popularity=popularity,
        )

    return _make


@pytest.fixture
def sample_raw_records() -> list[dict[str, Any]]:
    """Raw records in the shapes the data collaborator produces."""
    return [
        {
            "id": "1",
            "name": "Øya Festival",
            "location": {
                "city": "Oslo",
                "venue": "Tøyenparken",
                "region": "Eastern Norway",
                "coordinates": {"latitude": 59.9167, "longitude": 10.7667},
            },
            "dates": {"start": "2025-08-06", "end": "2025-08-09"},
            "price": {"currency": "NOK", "dayPass": 1200, "fullPass": 3200},
            "genres": ["Rock", "Pop", "Electronic", "Hip-hop"],
            "popularity": 98,
        },
        {
            "id": "2",
            "name": "Bergenfest",
            "location": {
                "city": "Bergen",
                "venue": "Bergenhus Fortress",
                "region": "Western Norway",
                "coordinates": {"latitude": 60.3913, "longitude": 5.3221},
            },
            "dates": {"start": "2025-06-11", "end": "2025-06-14"},
            "price": {"currency": "NOK", "dayPass": 950, "fullPass": 2800},
            "genres": ["Rock", "Indie", "Pop", "Folk"],
            "popularity": 85,
        },
        {
            "id": "4",
            "name": "Moldejazz",
            "location": {
                "city": "Molde",
                "venue": "Various venues in Molde",
                "coordinates": {"latitude": 62.7374, "longitude": 7.1588},
            },
            "dates": {"start": "2025-07-13", "end": "2025-07-18"},
            "price": {"currency": "NOK", "dayPass": 750, "fullPass": 2500},
            "genres": ["Jazz", "Blues"],
            "popularity": 70,
        },
        {
            "name": "Trænafestivalen",
            "venue": "Husøy",
            "city": "Træna",
            "latitude": 66.4966,
            "longitude": 12.0953,
            "dates": "Husøy 10/07 – 12/07/2025",
            "price": 2950,
            "genres": ["Pop", "Indie"],
            "popularity": 68,
        },
    ]


# ============================================
# Geolocation host fixtures
# ============================================


class FakeGeolocationHost:
    """Scriptable geolocation host.

    ``outcomes`` maps a strategy name to what ``request_once`` does: return
    ``Coordinates``, raise a ``LocationError``, or hang when set to ``None``.
    """

    def __init__(
        self,
        permission: PermissionState = PermissionState.PROMPT,
        outcomes: dict[str, Coordinates | LocationError | None] | None = None,
    ) -> None:
        self.permission = permission
        self.outcomes = outcomes or {}
        self.requests: list[PositionOptions] = []
        self.watches: dict[int, tuple[Callable, Callable]] = {}
        self.cleared: list[Hashable] = []
        self.watch_calls = 0
        self._next_token = 0
        self._permission_callbacks: list[Callable[[PermissionState], None]] = []

    async def request_once(self, options: PositionOptions) -> Coordinates:
        self.requests.append(options)
        outcome = self.outcomes.get(options.strategy)
        if outcome is None:
            await asyncio.sleep(3600)
        if isinstance(outcome, LocationError):
            raise outcome
        return outcome

    def watch(self, options, on_fix, on_error) -> Hashable:
        self.watch_calls += 1
        self._next_token += 1
        self.watches[self._next_token] = (on_fix, on_error)
        return self._next_token

    def clear_watch(self, token: Hashable) -> None:
        self.cleared.append(token)
        self.watches.pop(token, None)

    async def check_permission(self) -> PermissionState:
        return self.permission

    def subscribe_permission(self, callback) -> Callable[[], None]:
        self._permission_callbacks.append(callback)
        return lambda: self._permission_callbacks.remove(callback)

    def change_permission(self, state: PermissionState) -> None:
        self.permission = state
        for callback in list(self._permission_callbacks):
            callback(state)

    def emit_fix(self, coordinates: Coordinates) -> None:
        for on_fix, _ in list(self.watches.values()):
            on_fix(coordinates)

    def emit_error(self, error: LocationError) -> None:
        for _, on_error in list(self.watches.values()):
            on_error(error)

    @property
    def permission_subscribers(self) -> int:
        return len(self._permission_callbacks)


@pytest.fixture
def fake_host() -> FakeGeolocationHost:
    return FakeGeolocationHost()


@pytest.fixture
def host_factory() -> type[FakeGeolocationHost]:
    """Build hosts with a given permission state and scripted outcomes."""
    return FakeGeolocationHost
