"""Discovery session: the surface exposed to the rendering collaborator.

Composes the catalog store, geolocation provider, page controller and
suggestion matcher. Catalog and location failures stay independent: each is
surfaced on its own error value and neither stops the other.
"""

import asyncio
from collections.abc import Mapping
from types import TracebackType
from typing import Self

from loguru import logger

from festival_finder.core.domain.reactive import Signal
from festival_finder.modules.catalog.application.pagination import (
    IncrementalPageController,
    PageWindow,
)
from festival_finder.modules.catalog.application.store import (
    CatalogLoadResult,
    CatalogStore,
    DerivedView,
)
from festival_finder.modules.catalog.application.suggestions import (
    SuggestionCommit,
    SuggestionMatcher,
)
from festival_finder.modules.catalog.domain.entities import (
    Festival,
    QueryParams,
    SortKey,
)
from festival_finder.modules.geolocation.application.provider import (
    GeolocationProvider,
)
from festival_finder.modules.geolocation.domain.entities import (
    Coordinates,
    LocationResult,
    PermissionState,
)


class DiscoverySession:
    """Read-only reactive state plus the user-facing entry points."""

    def __init__(
        self,
        store: CatalogStore,
        provider: GeolocationProvider,
        *,
        pager: IncrementalPageController | None = None,
        suggestions: SuggestionMatcher | None = None,
    ) -> None:
        self.store = store
        self.provider = provider
        self.store.bind_location(provider.location)
        self.pager = pager or IncrementalPageController(store.view)
        self.suggestions = suggestions or SuggestionMatcher(store.records)
        self._started = False
        self._closed = False
        self._logger = logger.bind(service="DiscoverySession")

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> CatalogLoadResult:
        """Load the catalog and initialize geolocation concurrently."""
        self._started = True
        load_result, provider_result = await asyncio.gather(
            self.store.load(),
            self.provider.start(),
            return_exceptions=True,
        )

        if isinstance(provider_result, BaseException):
            if isinstance(provider_result, asyncio.CancelledError):
                raise provider_result
            self._logger.error(f"Geolocation start failed: {provider_result}")

        if isinstance(load_result, BaseException):
            if isinstance(load_result, asyncio.CancelledError):
                raise load_result
            self._logger.error(f"Catalog load failed: {load_result}")
            return CatalogLoadResult.failed(str(load_result))
        return load_result

    def close(self) -> None:
        """Release every subscription and abandon pending work."""
        if self._closed:
            return
        self._closed = True
        self.provider.close()
        self.store.close()
        self.pager.close()
        self.suggestions.close()

    async def retry_load(self) -> CatalogLoadResult:
        return await self.store.reload()

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def view(self) -> Signal[DerivedView]:
        return self.store.view

    @property
    def window(self) -> Signal[PageWindow]:
        return self.pager.window

    @property
    def visible(self) -> tuple[Festival, ...]:
        return self.pager.visible

    @property
    def query_params(self) -> Signal[QueryParams]:
        return self.store.query_params

    @property
    def loading(self) -> Signal[bool]:
        return self.store.loading

    @property
    def catalog_error(self) -> Signal[str | None]:
        return self.store.error

    @property
    def location(self) -> Signal[Coordinates | None]:
        return self.provider.location

    @property
    def permission(self) -> Signal[PermissionState]:
        return self.provider.permission

    @property
    def location_error(self) -> Signal[str | None]:
        return self.provider.error_message

    @property
    def candidates(self) -> Signal[tuple[Festival, ...]]:
        return self.suggestions.candidates

    @property
    def active_index(self) -> Signal[int]:
        return self.suggestions.active_index

    # ------------------------------------------------------------------
    # Query entry points
    # ------------------------------------------------------------------

    def set_search_text(self, text: str) -> None:
        self.store.set_search_text(text)

    def set_genre_filter(self, genre: str) -> None:
        self.store.set_genre_filter(genre)

    def set_city_filter(self, city: str) -> None:
        self.store.set_city_filter(city)

    def set_sort_key(self, sort_key: SortKey | str) -> None:
        self.store.set_sort_key(sort_key)

    def apply_query_string(self, params: Mapping[str, str]) -> None:
        """Restore query parameters from URL-style keys."""
        self.store.set_query_params(QueryParams.from_query_string(params))

    def query_string(self) -> dict[str, str]:
        return self.store.query_params.value.to_query_string()

    # ------------------------------------------------------------------
    # Location and paging
    # ------------------------------------------------------------------

    async def request_location(self) -> LocationResult:
        return await self.provider.request_location()

    async def grow_once(self) -> bool:
        return await self.pager.grow_once()

    async def on_viewport_proximity(self, reached: bool) -> bool:
        return await self.pager.on_viewport_proximity(reached)

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------

    def update_suggestions(self, term: str) -> tuple[Festival, ...]:
        return self.suggestions.update(term)

    def hover_suggestion(self, index: int) -> bool:
        return self.suggestions.hover(index)

    def dismiss_suggestions(self) -> None:
        self.suggestions.dismiss()

    def handle_suggestion_key(self, key: str) -> SuggestionCommit | None:
        """Keyboard navigation; ``Enter`` without a selection runs a search."""
        return self._apply_commit(self.suggestions.handle_key(key))

    def select_suggestion(self, index: int) -> SuggestionCommit | None:
        return self._apply_commit(self.suggestions.select(index))

    def _apply_commit(self, commit: SuggestionCommit | None) -> SuggestionCommit | None:
        if commit is not None and commit.search_text is not None:
            self.store.set_search_text(commit.search_text)
        return commit
