"""Geolocation host backed by an IP lookup service.

Outside a browser there is no device position API, so the host resolves the
public IP address to an approximate position. Both accuracy strategies hit
the same endpoint; only the timeout differs. Tracking polls the endpoint.
"""

from __future__ import annotations

import asyncio
import itertools
import math
from collections.abc import Callable, Hashable
from typing import Any

import httpx
from loguru import logger

from festival_finder.core.config import settings
from festival_finder.modules.geolocation.domain.entities import (
    Coordinates,
    LocationError,
    LocationErrorKind,
    PermissionState,
    PositionOptions,
)
from festival_finder.modules.geolocation.domain.ports import (
    ErrorCallback,
    FixCallback,
    GeolocationHost,
    PermissionCallback,
)


class IpGeolocationHost(GeolocationHost):
    """Resolve coordinates through an HTTP IP geolocation endpoint."""

    def __init__(
        self,
        *,
        lookup_url: str | None = None,
        enabled: bool | None = None,
        min_poll_interval_sec: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.lookup_url = lookup_url or settings.GEO_IP_LOOKUP_URL
        self._enabled = (
            enabled if enabled is not None else settings.GEO_IP_LOOKUP_ENABLED
        )
        self._min_poll_interval_sec = min_poll_interval_sec
        self._transport = transport
        self._watch_ids = itertools.count(1)
        self._watches: dict[int, asyncio.Task[None]] = {}
        self._permission_callbacks: list[PermissionCallback] = []

    # Permission

    async def check_permission(self) -> PermissionState:
        return PermissionState.GRANTED if self._enabled else PermissionState.DENIED

    def subscribe_permission(
        self, callback: PermissionCallback
    ) -> Callable[[], None]:
        self._permission_callbacks.append(callback)

        def _unsubscribe() -> None:
            if callback in self._permission_callbacks:
                self._permission_callbacks.remove(callback)

        return _unsubscribe

    def set_enabled(self, enabled: bool) -> None:
        """Toggle lookups on or off and notify permission subscribers."""
        if enabled == self._enabled:
            return
        self._enabled = enabled
        state = PermissionState.GRANTED if enabled else PermissionState.DENIED
        for callback in list(self._permission_callbacks):
            callback(state)

    # Acquisition

    async def request_once(self, options: PositionOptions) -> Coordinates:
        if not self._enabled:
            raise LocationError(LocationErrorKind.PERMISSION_DENIED)

        try:
            async with httpx.AsyncClient(
                timeout=options.timeout_sec,
                follow_redirects=False,
                transport=self._transport,
            ) as client:
                response = await client.get(
                    self.lookup_url,
                    headers={"Accept": "application/json"},
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException as exc:
            raise LocationError(LocationErrorKind.TIMEOUT) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(f"IP geolocation lookup failed: {exc}")
            raise LocationError(LocationErrorKind.UNAVAILABLE) from exc

        return self._parse_payload(payload)

    # Tracking

    def watch(
        self,
        options: PositionOptions,
        on_fix: FixCallback,
        on_error: ErrorCallback,
    ) -> Hashable:
        watch_id = next(self._watch_ids)
        interval = max(options.maximum_age_sec, self._min_poll_interval_sec)
        task = asyncio.get_running_loop().create_task(
            self._poll(options, interval, on_fix, on_error),
            name=f"ip-geolocation-watch-{watch_id}",
        )
        self._watches[watch_id] = task
        return watch_id

    def clear_watch(self, token: Hashable) -> None:
        task = self._watches.pop(token, None)  # type: ignore[arg-type]
        if task is not None:
            task.cancel()

    async def _poll(
        self,
        options: PositionOptions,
        interval: float,
        on_fix: FixCallback,
        on_error: ErrorCallback,
    ) -> None:
        while True:
            try:
                coordinates = await self.request_once(options)
            except LocationError as error:
                on_error(error)
                if error.kind is LocationErrorKind.PERMISSION_DENIED:
                    return
            else:
                on_fix(coordinates)
            await asyncio.sleep(interval)

    @staticmethod
    def _parse_payload(payload: Any) -> Coordinates:
        if not isinstance(payload, dict):
            raise LocationError(LocationErrorKind.UNAVAILABLE)

        latitude = payload.get("latitude", payload.get("lat"))
        longitude = payload.get("longitude", payload.get("lon"))
        try:
            lat = float(latitude)
            lon = float(longitude)
        except (TypeError, ValueError, OverflowError) as exc:
            raise LocationError(LocationErrorKind.UNAVAILABLE) from exc

        if not (math.isfinite(lat) and math.isfinite(lon)):
            raise LocationError(LocationErrorKind.UNAVAILABLE)
        return Coordinates(latitude=lat, longitude=lon)
