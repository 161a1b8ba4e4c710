"""Location cache adapters."""

from __future__ import annotations

import json
import math
from pathlib import Path

from loguru import logger

from festival_finder.modules.geolocation.domain.entities import Coordinates
from festival_finder.modules.geolocation.domain.ports import LocationCache


class InMemoryLocationCache(LocationCache):
    """Process-local cache; forgets everything on exit."""

    def __init__(self, initial: Coordinates | None = None) -> None:
        self._value = initial

    def load(self) -> Coordinates | None:
        return self._value

    def save(self, coordinates: Coordinates) -> None:
        self._value = coordinates

    def clear(self) -> None:
        self._value = None


class JsonFileLocationCache(LocationCache):
    """Persist the last fix as a small JSON document.

    A missing, unreadable or malformed file reads as "no cached fix".
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> Coordinates | None:
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"Ignoring unreadable location cache {self.path}: {exc}")
            return None
        return self._parse_payload(payload)

    def save(self, coordinates: Coordinates) -> None:
        payload = {
            "latitude": coordinates.latitude,
            "longitude": coordinates.longitude,
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload), encoding="utf-8")
        except OSError as exc:
            logger.warning(f"Failed to write location cache {self.path}: {exc}")

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning(f"Failed to clear location cache {self.path}: {exc}")

    @staticmethod
    def _parse_payload(payload: object) -> Coordinates | None:
        if not isinstance(payload, dict):
            return None
        latitude = payload.get("latitude")
        longitude = payload.get("longitude")
        if isinstance(latitude, bool) or isinstance(longitude, bool):
            return None
        if not isinstance(latitude, int | float) or not isinstance(
            longitude, int | float
        ):
            return None
        try:
            latitude, longitude = float(latitude), float(longitude)
        except OverflowError:
            return None
        if not (math.isfinite(latitude) and math.isfinite(longitude)):
            return None
        return Coordinates(latitude=latitude, longitude=longitude)
