"""Geolocation provider.

Produces a best-effort current position and keeps it fresh:

- ``get_current``: two sequential strategies (high accuracy, then low accuracy)
- ``watch``/``stop``: a single background tracking subscription
- ``start``/``close``: explicit init from the cache and permission teardown

Failures never escape the provider; they are returned as ``LocationResult``
values and published on ``error_message``.
"""

import asyncio
from collections.abc import AsyncIterator, Callable, Hashable
from contextlib import asynccontextmanager

from loguru import logger

from festival_finder.core.config import settings
from festival_finder.core.domain.reactive import Signal
from festival_finder.core.infrastructure.logging import BusinessEvents
from festival_finder.modules.geolocation.domain.entities import (
    Coordinates,
    LocationError,
    LocationErrorKind,
    LocationResult,
    PermissionState,
    PositionOptions,
)
from festival_finder.modules.geolocation.domain.ports import (
    GeolocationHost,
    LocationCache,
)


class WatchHandle:
    """Subscription handle returned by ``GeolocationProvider.watch``."""

    def __init__(
        self,
        on_update: Callable[[Coordinates], None] | None = None,
        on_error: Callable[[LocationError], None] | None = None,
    ) -> None:
        self.on_update = on_update
        self.on_error = on_error
        self.token: Hashable | None = None
        self.active = True

    def __repr__(self) -> str:
        return f"WatchHandle(token={self.token!r}, active={self.active})"


class GeolocationProvider:
    """Permission-gated, cached source of the user's coordinates."""

    def __init__(
        self,
        host: GeolocationHost,
        cache: LocationCache,
        *,
        high_accuracy_timeout_sec: float | None = None,
        low_accuracy_timeout_sec: float | None = None,
        watch_timeout_sec: float | None = None,
        watch_maximum_age_sec: float | None = None,
    ) -> None:
        self._host = host
        self._cache = cache
        self._high_accuracy = PositionOptions(
            high_accuracy=True,
            timeout_sec=high_accuracy_timeout_sec
            or settings.GEO_HIGH_ACCURACY_TIMEOUT_SEC,
        )
        self._low_accuracy = PositionOptions(
            high_accuracy=False,
            timeout_sec=low_accuracy_timeout_sec
            or settings.GEO_LOW_ACCURACY_TIMEOUT_SEC,
        )
        self._watch_options = PositionOptions(
            high_accuracy=True,
            timeout_sec=watch_timeout_sec or settings.GEO_WATCH_TIMEOUT_SEC,
            maximum_age_sec=(
                watch_maximum_age_sec
                if watch_maximum_age_sec is not None
                else settings.GEO_WATCH_MAXIMUM_AGE_SEC
            ),
        )

        self.location: Signal[Coordinates | None] = Signal(None, name="location")
        self.permission: Signal[PermissionState] = Signal(
            PermissionState.UNKNOWN, name="permission"
        )
        self.error_message: Signal[str | None] = Signal(None, name="location_error")

        self._last_error: LocationError | None = None
        self._watch: WatchHandle | None = None
        self._unsubscribe_permission: Callable[[], None] | None = None
        self._logger = logger.bind(service="GeolocationProvider")

    @property
    def strategies(self) -> tuple[PositionOptions, PositionOptions]:
        return self._high_accuracy, self._low_accuracy

    @property
    def last_error(self) -> LocationError | None:
        return self._last_error

    @property
    def is_watching(self) -> bool:
        return self._watch is not None and self._watch.active

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Read the cached fix, check permission and start tracking if granted."""
        cached = self._cache.load()
        if cached is not None:
            self.location.set(cached)

        try:
            state = await self._host.check_permission()
        except Exception as e:
            self._logger.warning(f"Permission check failed: {e}")
            state = PermissionState.UNKNOWN

        self._on_permission_change(state)

        if self._unsubscribe_permission is None:
            self._unsubscribe_permission = self._host.subscribe_permission(
                self._on_permission_change
            )

    def close(self) -> None:
        """Stop tracking and detach from host permission changes."""
        self.stop(reason="closed")
        if self._unsubscribe_permission is not None:
            self._unsubscribe_permission()
            self._unsubscribe_permission = None

    def invalidate(self) -> None:
        """Forget the current and cached position."""
        self._cache.clear()
        self.location.set(None)

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------

    async def get_current(self) -> LocationResult:
        """Acquire a fix, falling back from high to low accuracy."""
        last_error = LocationError(LocationErrorKind.UNAVAILABLE)

        for options in self.strategies:
            try:
                async with asyncio.timeout(options.timeout_sec):
                    coordinates = await self._host.request_once(options)
            except TimeoutError:
                last_error = LocationError(LocationErrorKind.TIMEOUT)
            except LocationError as e:
                last_error = e
            except Exception as e:
                self._logger.exception(f"Geolocation host failed: {e}")
                last_error = LocationError(LocationErrorKind.UNAVAILABLE)
            else:
                self._accept_fix(coordinates)
                BusinessEvents.location_acquired(strategy=options.strategy)
                return LocationResult.success(coordinates)

            BusinessEvents.location_failed(
                kind=last_error.kind.value, strategy=options.strategy
            )
            if last_error.kind is LocationErrorKind.PERMISSION_DENIED:
                break

        self._record_error(last_error)
        return LocationResult.failure(last_error)

    async def request_location(self) -> LocationResult:
        """Manual acquisition triggered by the user.

        A denied permission is reported again without prompting the host.
        """
        if self.permission.value is PermissionState.DENIED:
            error = LocationError(LocationErrorKind.PERMISSION_DENIED)
            self._record_error(error)
            return LocationResult.failure(error)

        result = await self.get_current()
        if result.is_success:
            self.watch()
        return result

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    def watch(
        self,
        on_update: Callable[[Coordinates], None] | None = None,
        on_error: Callable[[LocationError], None] | None = None,
    ) -> WatchHandle | None:
        """Start background tracking.

        Returns the active handle when a watch is already running, or None
        when permission has not been granted.
        """
        if self._watch is not None and self._watch.active:
            return self._watch

        if self.permission.value is not PermissionState.GRANTED:
            self._logger.debug(
                f"Not starting watch, permission is {self.permission.value}"
            )
            return None

        handle = WatchHandle(on_update, on_error)
        try:
            handle.token = self._host.watch(
                self._watch_options,
                lambda coordinates: self._on_watch_fix(handle, coordinates),
                lambda error: self._on_watch_error(handle, error),
            )
        except Exception as e:
            self._logger.exception(f"Failed to start watch: {e}")
            handle.active = False
            self._record_error(LocationError(LocationErrorKind.UNAVAILABLE))
            return None

        if not handle.active:
            # Stopped from inside a synchronous host callback.
            self._host.clear_watch(handle.token)
            return None

        self._watch = handle
        BusinessEvents.watch_started()
        return handle

    def stop(
        self, handle: WatchHandle | None = None, *, reason: str = "cancelled"
    ) -> None:
        """Cancel a watch subscription. Safe to call repeatedly."""
        handle = handle or self._watch
        if handle is None or not handle.active:
            return

        handle.active = False
        if self._watch is handle:
            self._watch = None

        if handle.token is not None:
            try:
                self._host.clear_watch(handle.token)
            except Exception as e:
                self._logger.warning(f"Failed to clear watch {handle.token}: {e}")

        BusinessEvents.watch_stopped(reason=reason)

    @asynccontextmanager
    async def tracking(
        self,
        on_update: Callable[[Coordinates], None] | None = None,
        on_error: Callable[[LocationError], None] | None = None,
    ) -> AsyncIterator[WatchHandle | None]:
        """Scoped watch: a subscription started here is always released."""
        already_watching = self.is_watching
        handle = self.watch(on_update, on_error)
        try:
            yield handle
        finally:
            if handle is not None and not already_watching:
                self.stop(handle, reason="scope_exit")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _on_permission_change(self, state: PermissionState) -> None:
        self.permission.set(state)
        if state is PermissionState.GRANTED:
            self.watch()
            return

        self.stop(reason="permission_changed")
        if state is PermissionState.DENIED:
            self.invalidate()

    def _on_watch_fix(self, handle: WatchHandle, coordinates: Coordinates) -> None:
        if not handle.active:
            return
        self._accept_fix(coordinates)
        if handle.on_update is not None:
            try:
                handle.on_update(coordinates)
            except Exception as e:
                self._logger.error(f"Watch update callback failed: {e}")

    def _on_watch_error(self, handle: WatchHandle, error: LocationError) -> None:
        if not handle.active:
            return
        BusinessEvents.location_failed(kind=error.kind.value, strategy="watch")
        if handle.on_error is not None:
            try:
                handle.on_error(error)
            except Exception as e:
                self._logger.error(f"Watch error callback failed: {e}")
        if error.kind is LocationErrorKind.PERMISSION_DENIED:
            self.stop(handle, reason="permission_denied")
        self._record_error(error)

    def _accept_fix(self, coordinates: Coordinates) -> None:
        self.location.set(coordinates)
        self._cache.save(coordinates)
        self._last_error = None
        self.error_message.set(None)
        self.permission.set(PermissionState.GRANTED)

    def _record_error(self, error: LocationError) -> None:
        self._last_error = error
        self.error_message.set(error.message)
        self._logger.warning(f"Geolocation error ({error.kind}): {error.message}")
        if error.kind is LocationErrorKind.PERMISSION_DENIED:
            self.permission.set(PermissionState.DENIED)
            self.stop(reason="permission_denied")
            self.invalidate()
