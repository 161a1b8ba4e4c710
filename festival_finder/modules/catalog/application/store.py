"""Catalog store: canonical records, query parameters and the derived view."""

import asyncio
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from loguru import logger

from festival_finder.core.config import settings
from festival_finder.core.domain.reactive import Signal
from festival_finder.core.infrastructure.logging import BusinessEvents
from festival_finder.modules.catalog.domain.entities import (
    Festival,
    FestivalWithDistance,
    QueryParams,
    SortKey,
)
from festival_finder.modules.catalog.domain.exceptions import (
    DataLoadError,
    FestivalNotFoundError,
    InvalidFestivalRecordError,
)
from festival_finder.modules.catalog.domain.query import (
    derive_view,
    sort_festivals,
)
from festival_finder.modules.catalog.domain.repository import (
    FestivalDataSource,
    RawRecord,
)
from festival_finder.modules.catalog.infrastructure.mappers import FestivalMapper
from festival_finder.modules.geolocation.domain.distance import distance_km
from festival_finder.modules.geolocation.domain.entities import Coordinates


@dataclass(frozen=True)
class DerivedView:
    """Filtered and sorted records plus what they were derived from.

    ``identity`` changes on a reload or a query change, but not when only
    the reference coordinates move.
    """

    items: tuple[Festival, ...] = ()
    params: QueryParams = field(default_factory=QueryParams)
    generation: int = 0

    @property
    def identity(self) -> tuple[int, QueryParams]:
        return self.generation, self.params

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class CatalogLoadResult:
    """Outcome of a catalog load cycle."""

    success: bool
    loaded_count: int = 0
    dropped_count: int = 0
    error: str | None = None

    @classmethod
    def succeeded(cls, loaded_count: int, dropped_count: int) -> "CatalogLoadResult":
        return cls(success=True, loaded_count=loaded_count, dropped_count=dropped_count)

    @classmethod
    def failed(cls, error: str) -> "CatalogLoadResult":
        return cls(success=False, error=error)


class CatalogStore:
    """Single source of truth for festival records and query parameters.

    Every state change recomputes ``view`` synchronously. Load failures are
    captured into ``error`` and never raised to callers.
    """

    def __init__(
        self,
        source: FestivalDataSource,
        mapper: FestivalMapper | None = None,
        *,
        distance_fallback: SortKey | str | None = None,
    ) -> None:
        self._source = source
        self._mapper = mapper or FestivalMapper()
        self._distance_fallback = SortKey.parse(
            distance_fallback or settings.DISTANCE_FALLBACK_SORT
        )

        self.records: Signal[tuple[Festival, ...]] = Signal((), name="records")
        self.query_params: Signal[QueryParams] = Signal(
            QueryParams(), name="query_params"
        )
        self.loading: Signal[bool] = Signal(False, name="loading")
        self.error: Signal[str | None] = Signal(None, name="catalog_error")
        self.view: Signal[DerivedView] = Signal(DerivedView(), name="view")

        self._by_id: dict[str, Festival] = {}
        self._generation = 0
        self._coordinates: Coordinates | None = None
        self._distance_degraded = False
        self._load_task: asyncio.Task[CatalogLoadResult] | None = None
        self._unbind_location: Callable[[], None] | None = None
        self._closed = False
        self._logger = logger.bind(service="CatalogStore")

    @property
    def coordinates(self) -> Coordinates | None:
        return self._coordinates

    @property
    def is_loading(self) -> bool:
        return self._load_task is not None and not self._load_task.done()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> CatalogLoadResult:
        """Fetch and normalize the catalog.

        A call made while a load is in flight waits for that load instead of
        fetching again.
        """
        if self._closed:
            return CatalogLoadResult.failed("store is closed")

        task = self._load_task
        if task is None or task.done():
            task = asyncio.create_task(self._run_load(), name="catalog-load")
            self._load_task = task

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if task.cancelled() and (current is None or not current.cancelling()):
                return CatalogLoadResult.failed("load cancelled")
            raise

    async def reload(self) -> CatalogLoadResult:
        """Load again, replacing the records on success.

        A load already in flight is joined rather than restarted.
        """
        return await self.load()

    def cancel_load(self) -> bool:
        """Abandon the in-flight load. Returns True when one was cancelled."""
        task = self._load_task
        if task is None or task.done():
            return False
        task.cancel()
        self._logger.info("Catalog load cancelled")
        return True

    def close(self) -> None:
        """Cancel pending work and detach from the location source."""
        self._closed = True
        self.cancel_load()
        if self._unbind_location is not None:
            self._unbind_location()
            self._unbind_location = None

    async def _run_load(self) -> CatalogLoadResult:
        self.loading.set(True)
        started = time.perf_counter()
        try:
            raw_records = await self._source.fetch_all_records()
            records, dropped = self._normalize(raw_records)
        except DataLoadError as e:
            return self._fail(e)
        except Exception as e:
            self._logger.exception(f"Unexpected error loading festivals: {e}")
            return self._fail(DataLoadError(str(e)))
        finally:
            self.loading.set(False)

        if self._closed:
            return CatalogLoadResult.failed("store is closed")

        self._replace_records(records)
        self.error.set(None)
        BusinessEvents.catalog_loaded(
            loaded=len(records),
            dropped=dropped,
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
        return CatalogLoadResult.succeeded(len(records), dropped)

    def _normalize(
        self, raw_records: Iterable[RawRecord]
    ) -> tuple[tuple[Festival, ...], int]:
        if not isinstance(raw_records, list | tuple):
            raise DataLoadError("data source returned a non-list payload")

        records: list[Festival] = []
        seen: set[str] = set()
        dropped = 0
        for raw in raw_records:
            try:
                festival = self._mapper.to_domain(raw)
            except InvalidFestivalRecordError as e:
                self._logger.debug(f"Dropping record {e.record_id or '?'}: {e.reason}")
                dropped += 1
                continue
            if festival.id in seen:
                self._logger.debug(f"Dropping duplicate record {festival.id}")
                dropped += 1
                continue
            seen.add(festival.id)
            records.append(festival)

        if raw_records and not records:
            raise DataLoadError(f"all {dropped} records were unusable")
        return tuple(records), dropped

    def _replace_records(self, records: tuple[Festival, ...]) -> None:
        self._generation += 1
        self._by_id = {festival.id: festival for festival in records}
        self.records.set(records)
        self._recompute()

    def _fail(self, error: DataLoadError) -> CatalogLoadResult:
        if self._closed:
            return CatalogLoadResult.failed(error.message)
        self._replace_records(())
        self.error.set(error.message)
        BusinessEvents.catalog_load_failed(error=error.reason)
        return CatalogLoadResult.failed(error.message)

    # ------------------------------------------------------------------
    # Query parameters
    # ------------------------------------------------------------------

    def set_search_text(self, text: str) -> None:
        self._update_params(search_text=text)

    def set_genre_filter(self, genre: str) -> None:
        self._update_params(genre_filter=genre)

    def set_city_filter(self, city: str) -> None:
        self._update_params(city_filter=city)

    def set_sort_key(self, sort_key: SortKey | str) -> None:
        """Change the ordering. Unknown keys raise ``ValueError``."""
        self._update_params(sort_key=sort_key)

    def set_query_params(self, params: QueryParams) -> None:
        """Replace all query parameters at once."""
        if self.query_params.set(params):
            self._recompute()

    def _update_params(self, **changes: object) -> None:
        self.set_query_params(self.query_params.value.with_changes(**changes))

    # ------------------------------------------------------------------
    # Location
    # ------------------------------------------------------------------

    def bind_location(self, location: Signal[Coordinates | None]) -> None:
        """Follow a coordinates signal, recomputing the view on every change."""
        if self._unbind_location is not None:
            self._unbind_location()
        self._coordinates = location.value
        self._unbind_location = location.subscribe(self._on_location_change)
        self._recompute()

    def _on_location_change(self, coordinates: Coordinates | None) -> None:
        self._coordinates = coordinates
        self._recompute()

    # ------------------------------------------------------------------
    # Derived view
    # ------------------------------------------------------------------

    def _recompute(self) -> None:
        # One snapshot of the inputs per derivation.
        records = self.records.value
        params = self.query_params.value
        coordinates = self._coordinates

        degraded = params.sort_key is SortKey.DISTANCE and coordinates is None
        if degraded and not self._distance_degraded:
            BusinessEvents.feature_degraded(
                feature="distance_sort",
                reason="location_unavailable",
                fallback=self._distance_fallback.value,
            )
        self._distance_degraded = degraded

        self.view.set(
            DerivedView(
                items=derive_view(
                    records,
                    params,
                    coordinates,
                    distance_fallback=self._distance_fallback,
                ),
                params=params,
                generation=self._generation,
            )
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_by_id(self, festival_id: str) -> Festival | None:
        return self._by_id.get(festival_id)

    def require(self, festival_id: str) -> Festival:
        festival = self._by_id.get(festival_id)
        if festival is None:
            raise FestivalNotFoundError(festival_id)
        return festival

    def popular(self, limit: int | None = None) -> list[Festival]:
        """Most popular festivals first."""
        limit = settings.POPULAR_LIMIT if limit is None else limit
        ordered = sort_festivals(self.records.value, SortKey.POPULARITY, None)
        return ordered[:limit]

    def upcoming(
        self, now: datetime | None = None, limit: int | None = None
    ) -> list[Festival]:
        """Festivals starting at or after ``now``, soonest first."""
        now = now or datetime.now(UTC)
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        limit = settings.UPCOMING_LIMIT if limit is None else limit

        pending = [f for f in self.records.value if _aware(f.dates.start) >= now]
        return sort_festivals(pending, SortKey.DATE, None)[:limit]

    def by_month(self, month: int, year: int) -> list[Festival]:
        """Festivals starting in the given calendar month (1-12)."""
        if not 1 <= month <= 12:
            raise ValueError(f"month must be between 1 and 12, got {month}")
        return [
            f
            for f in self.records.value
            if f.dates.start.month == month and f.dates.start.year == year
        ]

    def nearby(
        self,
        origin: Coordinates,
        radius_km: float | None = None,
        limit: int | None = None,
    ) -> list[FestivalWithDistance]:
        """Located festivals within ``radius_km`` of ``origin``, nearest first."""
        radius_km = settings.NEARBY_RADIUS_KM if radius_km is None else radius_km
        limit = settings.NEARBY_LIMIT if limit is None else limit

        matches = []
        for festival in self.records.value:
            if festival.coordinates is None:
                continue
            distance = distance_km(origin, festival.coordinates)
            if distance <= radius_km:
                matches.append(FestivalWithDistance(festival, distance))

        matches.sort(key=lambda item: item.distance_km)
        return matches[:limit]

    def available_genres(self) -> list[str]:
        """Distinct genres in first-seen order, compared case-insensitively."""
        return _distinct(g for f in self.records.value for g in f.genres)

    def available_cities(self) -> list[str]:
        """Distinct non-empty cities in first-seen order."""
        return _distinct(f.city for f in self.records.value if f.city)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def _distinct(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for value in values:
        key = value.casefold()
        if key not in seen:
            seen.add(key)
            result.append(value)
    return result
