"""Geolocation domain models."""

from dataclasses import dataclass
from enum import StrEnum

from festival_finder.core.domain.exceptions import DomainException


@dataclass(frozen=True)
class Coordinates:
    """A position in decimal degrees.

    ``None`` is used for an unknown position; ``Coordinates(0, 0)`` is a real
    point in the Gulf of Guinea and must not be confused with it.
    """

    latitude: float
    longitude: float


class PermissionState(StrEnum):
    """Host permission state for location access."""

    UNKNOWN = "unknown"
    PROMPT = "prompt"
    GRANTED = "granted"
    DENIED = "denied"


class LocationErrorKind(StrEnum):
    """Why a fix could not be produced."""

    PERMISSION_DENIED = "permission_denied"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"


LOCATION_ERROR_MESSAGES: dict[LocationErrorKind, str] = {
    LocationErrorKind.PERMISSION_DENIED: (
        "Location access is required to show festivals near you."
    ),
    LocationErrorKind.UNAVAILABLE: "Location information is not available.",
    LocationErrorKind.TIMEOUT: "The location request took too long.",
}


class LocationError(DomainException):
    """A failed geolocation attempt."""

    def __init__(self, kind: LocationErrorKind, message: str | None = None):
        self.kind = LocationErrorKind(kind)
        self.error_code = f"LOCATION_{self.kind.name}"
        super().__init__(message or LOCATION_ERROR_MESSAGES[self.kind])

    @property
    def is_retryable(self) -> bool:
        """Permission denials are final; the others allow a manual retry."""
        return self.kind is not LocationErrorKind.PERMISSION_DENIED


@dataclass(frozen=True)
class PositionOptions:
    """Options for a single acquisition attempt or a watch."""

    high_accuracy: bool
    timeout_sec: float
    maximum_age_sec: float = 0.0

    @property
    def strategy(self) -> str:
        return "high_accuracy" if self.high_accuracy else "low_accuracy"


@dataclass(frozen=True)
class LocationResult:
    """Outcome of an acquisition: either coordinates or an error."""

    coordinates: Coordinates | None = None
    error: LocationError | None = None

    @property
    def is_success(self) -> bool:
        return self.coordinates is not None

    @classmethod
    def success(cls, coordinates: Coordinates) -> "LocationResult":
        return cls(coordinates=coordinates)

    @classmethod
    def failure(cls, error: LocationError) -> "LocationResult":
        return cls(error=error)
