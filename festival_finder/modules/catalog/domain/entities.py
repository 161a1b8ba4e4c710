"""Catalog domain entities."""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from festival_finder.modules.geolocation.domain.entities import Coordinates

ALL = "all"

_QUERY_KEYS = {
    "search_text": "search",
    "genre_filter": "genre",
    "city_filter": "city",
    "sort_key": "sort",
}


class SortKey(StrEnum):
    """Ordering applied to the derived view."""

    POPULARITY = "popularity"
    DATE = "date"
    PRICE = "price"
    CITY = "city"
    DISTANCE = "distance"

    @classmethod
    def parse(cls, value: "str | SortKey") -> "SortKey":
        """Parse a sort key, accepting the legacy ``location`` alias for city."""
        normalized = str(value).strip().lower()
        if normalized == "location":
            return cls.CITY
        return cls(normalized)


class Location(BaseModel):
    """Where a festival takes place."""

    model_config = ConfigDict(frozen=True)

    venue: str = Field(default="", description="Venue name")
    city: str = Field(default="", description="City")
    region: str = Field(default="", description="Region")
    coordinates: Coordinates | None = Field(
        default=None, description="Venue position, None when unknown"
    )


class DateRange(BaseModel):
    """Festival schedule; start <= end is expected but not enforced."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime


class Price(BaseModel):
    """Ticket prices; day_pass <= full_pass is expected but not enforced."""

    model_config = ConfigDict(frozen=True)

    currency: str = Field(default="NOK")
    day_pass: float = Field(default=0.0)
    full_pass: float = Field(default=0.0)


class Festival(BaseModel):
    """A catalog record. Never mutated once loaded."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., min_length=1, description="Unique key")
    name: str = Field(..., min_length=1, description="Display name")
    location: Location = Field(default_factory=Location)
    dates: DateRange
    price: Price = Field(default_factory=Price)
    genres: tuple[str, ...] = Field(default=(), description="Free-text genre tags")
    popularity: float = Field(default=0.0, description="Higher is more popular")

    description: str = Field(default="")
    website: str | None = Field(default=None)
    image_url: str | None = Field(default=None)
    age_limit: int | None = Field(default=None)

    @property
    def city(self) -> str:
        return self.location.city

    @property
    def venue(self) -> str:
        return self.location.venue

    @property
    def region(self) -> str:
        return self.location.region

    @property
    def coordinates(self) -> Coordinates | None:
        return self.location.coordinates


@dataclass(frozen=True)
class FestivalWithDistance:
    """A festival paired with its distance from a reference point."""

    festival: Festival
    distance_km: float


class QueryParams(BaseModel):
    """User-controlled query parameters for the derived view."""

    model_config = ConfigDict(frozen=True)

    search_text: str = Field(default="")
    genre_filter: str = Field(default=ALL)
    city_filter: str = Field(default=ALL)
    sort_key: SortKey = Field(default=SortKey.POPULARITY)

    @field_validator("search_text", mode="before")
    @classmethod
    def _coerce_search_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("genre_filter", "city_filter", mode="before")
    @classmethod
    def _normalize_filter(cls, value: Any) -> str:
        if value is None:
            return ALL
        text = str(value).strip()
        if not text or text.lower() == ALL:
            return ALL
        return text

    @field_validator("sort_key", mode="before")
    @classmethod
    def _parse_sort_key(cls, value: Any) -> SortKey:
        return SortKey.parse(value)

    def with_changes(self, **changes: Any) -> "QueryParams":
        """Return a validated copy with the given fields replaced."""
        return QueryParams.model_validate({**self.model_dump(), **changes})

    @classmethod
    def from_query_string(cls, params: Mapping[str, str]) -> "QueryParams":
        """Build params from URL-style keys (search, genre, city, sort).

        Unknown sort values fall back to the default ordering.
        """
        values: dict[str, Any] = {}
        for field_name, key in _QUERY_KEYS.items():
            if key in params:
                values[field_name] = params[key]

        sort_value = values.get("sort_key")
        if sort_value is not None:
            try:
                values["sort_key"] = SortKey.parse(sort_value)
            except ValueError:
                values.pop("sort_key")
        return cls.model_validate(values)

    def to_query_string(self) -> dict[str, str]:
        """Serialize to URL-style keys, omitting default values."""
        defaults = QueryParams()
        result: dict[str, str] = {}
        for field_name, key in _QUERY_KEYS.items():
            value = getattr(self, field_name)
            if value != getattr(defaults, field_name):
                result[key] = str(value)
        return result
