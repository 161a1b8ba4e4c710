"""Incremental page window over the derived view."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from festival_finder.core.config import settings
from festival_finder.core.domain.reactive import Signal
from festival_finder.core.infrastructure.logging import BusinessEvents
from festival_finder.modules.catalog.application.store import DerivedView
from festival_finder.modules.catalog.domain.entities import Festival


@dataclass(frozen=True)
class PageWindow:
    """Exposed prefix length over the derived view."""

    size: int = 0
    has_more: bool = False


class IncrementalPageController:
    """Grow a visible prefix of the derived view one page at a time.

    The window resets to a single page whenever the view identity changes
    (a reload or a query change). Concurrent grow triggers collapse into one.
    """

    def __init__(
        self,
        view: Signal[DerivedView],
        *,
        page_size: int | None = None,
        settle_sec: float | None = None,
    ) -> None:
        self.page_size = page_size if page_size is not None else settings.PAGE_SIZE
        if self.page_size < 1:
            raise ValueError("page_size must be at least 1")
        self.settle_sec = (
            settle_sec if settle_sec is not None else settings.PAGE_GROW_SETTLE_SEC
        )

        self._view = view.value
        self._size = min(self.page_size, len(self._view))
        self._growing = False

        self.window: Signal[PageWindow] = Signal(
            self._snapshot(), name="page_window"
        )
        self._unsubscribe: Callable[[], None] | None = view.subscribe(
            self._on_view_change
        )
        self._logger = logger.bind(service="IncrementalPageController")

    @property
    def size(self) -> int:
        return self._size

    @property
    def total(self) -> int:
        return len(self._view)

    @property
    def has_more(self) -> bool:
        return self._size < len(self._view)

    @property
    def is_growing(self) -> bool:
        return self._growing

    @property
    def visible(self) -> tuple[Festival, ...]:
        return self._view.items[: self._size]

    async def grow_once(self) -> bool:
        """Expose one more page. Returns False when nothing was grown."""
        if self._growing or not self.has_more:
            return False

        self._growing = True
        identity = self._view.identity
        try:
            # Let triggers fired in the same burst observe the guard.
            await asyncio.sleep(self.settle_sec)
            if self._view.identity != identity:
                self._logger.debug("View changed during grow, dropping it")
                return False
            self._size = min(self._size + self.page_size, len(self._view))
            self.window.set(self._snapshot())
        finally:
            self._growing = False

        BusinessEvents.page_grown(size=self._size, total=len(self._view))
        return True

    async def on_viewport_proximity(self, reached: bool) -> bool:
        """Entry point for the renderer's sentinel-visibility signal."""
        if not reached:
            return False
        return await self.grow_once()

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_view_change(self, view: DerivedView) -> None:
        previous = self._view
        self._view = view
        if view.identity != previous.identity:
            self._size = min(self.page_size, len(view))
        else:
            self._size = min(self._size, len(view))
        self.window.set(self._snapshot())

    def _snapshot(self) -> PageWindow:
        return PageWindow(size=self._size, has_more=self.has_more)
