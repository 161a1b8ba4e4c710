"""Geolocation ports."""

from collections.abc import Callable, Hashable
from typing import Protocol

from festival_finder.modules.geolocation.domain.entities import (
    Coordinates,
    LocationError,
    PermissionState,
    PositionOptions,
)

FixCallback = Callable[[Coordinates], None]
ErrorCallback = Callable[[LocationError], None]
PermissionCallback = Callable[[PermissionState], None]


class GeolocationHost(Protocol):
    """Port for the OS or browser level coordinate source."""

    async def request_once(self, options: PositionOptions) -> Coordinates:
        """Acquire a single fix.

        Raises:
            LocationError: when no fix could be produced.
        """
        ...

    def watch(
        self,
        options: PositionOptions,
        on_fix: FixCallback,
        on_error: ErrorCallback,
    ) -> Hashable:
        """Start continuous tracking and return a token for clear_watch."""
        ...

    def clear_watch(self, token: Hashable) -> None: ...

    async def check_permission(self) -> PermissionState: ...

    def subscribe_permission(
        self, callback: PermissionCallback
    ) -> Callable[[], None]:
        """Register for permission changes; returns an unsubscribe callable."""
        ...


class LocationCache(Protocol):
    """Port for persisting the last known fix between sessions."""

    def load(self) -> Coordinates | None: ...

    def save(self, coordinates: Coordinates) -> None: ...

    def clear(self) -> None: ...
