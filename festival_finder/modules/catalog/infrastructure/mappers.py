"""Raw record -> Festival mapper.

Accepts both record shapes produced by the data collaborator:

- nested: ``location{city, venue, region, coordinates}``, ``dates{start, end}``,
  ``price{currency, dayPass, fullPass}``
- flat: ``venue``/``city`` at the top level, ``dates`` as a
  ``"DD/MM – DD/MM/YYYY"`` string and ``price`` as a single number

Records without a name or a usable start date are rejected.
"""

from __future__ import annotations

import hashlib
import math
import re
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from festival_finder.core.config import settings
from festival_finder.modules.catalog.domain.entities import (
    DateRange,
    Festival,
    Location,
    Price,
)
from festival_finder.modules.catalog.domain.exceptions import (
    InvalidFestivalRecordError,
)
from festival_finder.modules.catalog.domain.repository import RawRecord
from festival_finder.modules.geolocation.domain.entities import Coordinates

_RANGE_SEPARATOR = re.compile(r"\s+[–—-]\s+")
_DAY_MONTH = re.compile(r"^(\d{1,2})/(\d{1,2})(?:/(\d{4}))?$")


def _first(raw: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _finite_float(value: int | float, label: str) -> float:
    # JSON allows NaN/Infinity literals and integers beyond float range.
    try:
        number = float(value)
    except OverflowError as exc:
        raise InvalidFestivalRecordError(f"{label} is out of range") from exc
    if not math.isfinite(number):
        raise InvalidFestivalRecordError(f"{label} is not finite")
    return number


class FestivalMapper:
    """Normalize raw records into immutable Festival entities."""

    def __init__(self, default_currency: str | None = None) -> None:
        self.default_currency = default_currency or settings.DEFAULT_CURRENCY

    def to_domain(self, raw: RawRecord) -> Festival:
        if not isinstance(raw, dict):
            raise InvalidFestivalRecordError("record is not an object")

        name = raw.get("name")
        if not isinstance(name, str) or not name.strip():
            raise InvalidFestivalRecordError("missing name", self._raw_id(raw))
        name = name.strip()

        dates = self._parse_dates(raw.get("dates"))
        record_id = self._raw_id(raw) or self._derive_id(name, dates.start)

        try:
            return Festival(
                id=record_id,
                name=name,
                location=self._parse_location(raw),
                dates=dates,
                price=self._parse_price(raw.get("price")),
                genres=self._parse_genres(raw.get("genres")),
                popularity=self._parse_popularity(raw.get("popularity")),
                description=self._optional_text(raw, "description") or "",
                website=self._optional_text(raw, "website"),
                image_url=self._optional_text(raw, "imageUrl", "image_url"),
                age_limit=self._parse_age_limit(_first(raw, "ageLimit", "age_limit")),
            )
        except ValidationError as exc:
            raise InvalidFestivalRecordError(str(exc), record_id) from exc

    # ------------------------------------------------------------------

    @staticmethod
    def _raw_id(raw: dict[str, Any]) -> str | None:
        value = raw.get("id")
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return str(value)
            except ValueError as exc:  # beyond the int -> str digit limit
                raise InvalidFestivalRecordError("id is too large") from exc
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    @staticmethod
    def _derive_id(name: str, start: datetime) -> str:
        digest = hashlib.sha256(f"{name}|{start.isoformat()}".encode()).hexdigest()
        return f"fest_{digest[:16]}"

    def _parse_location(self, raw: dict[str, Any]) -> Location:
        nested = raw.get("location")
        if nested is not None and not isinstance(nested, dict):
            raise InvalidFestivalRecordError("location is not an object")
        source = nested if nested is not None else raw

        return Location(
            venue=self._text_field(source, "venue"),
            city=self._text_field(source, "city"),
            region=self._text_field(source, "region"),
            coordinates=self._parse_coordinates(source),
        )

    @staticmethod
    def _text_field(source: dict[str, Any], key: str) -> str:
        value = source.get(key)
        if value is None:
            return ""
        if not isinstance(value, str):
            raise InvalidFestivalRecordError(f"{key} is not text")
        return value.strip()

    @staticmethod
    def _parse_coordinates(source: dict[str, Any]) -> Coordinates | None:
        container = source.get("coordinates")
        if not isinstance(container, dict):
            container = source
        latitude = container.get("latitude")
        longitude = container.get("longitude")
        if not (_is_number(latitude) and _is_number(longitude)):
            return None
        latitude = _finite_float(latitude, "latitude")
        longitude = _finite_float(longitude, "longitude")
        # The data store writes (0, 0) for venues it could not geocode.
        if latitude == 0 and longitude == 0:
            return None
        return Coordinates(latitude=latitude, longitude=longitude)

    def _parse_dates(self, value: Any) -> DateRange:
        if isinstance(value, dict):
            start = self._parse_instant(value.get("start"))
            if start is None:
                raise InvalidFestivalRecordError("missing start date")
            end = self._parse_instant(value.get("end")) or start
            return DateRange(start=start, end=end)

        if isinstance(value, str) and value.strip():
            instant = self._parse_instant(value)
            if instant is not None:
                return DateRange(start=instant, end=instant)
            return self._parse_date_range_text(value.strip())

        raise InvalidFestivalRecordError("missing dates")

    @staticmethod
    def _parse_instant(value: Any) -> datetime | None:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, str) and value.strip():
            try:
                parsed = datetime.fromisoformat(value.strip())
            except ValueError:
                return None
        else:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)

    @staticmethod
    def _parse_date_range_text(text: str) -> DateRange:
        """Parse ``"Venue 06/08 – 09/08/2025"`` style ranges."""
        parts = _RANGE_SEPARATOR.split(text, maxsplit=1)
        matches = []
        for part in parts:
            # A venue prefix may precede the first date token.
            token = part.split()[-1] if part.split() else ""
            match = _DAY_MONTH.match(token)
            if match is None:
                raise InvalidFestivalRecordError(f"unparseable dates '{text}'")
            matches.append(match)

        years = [m.group(3) for m in matches if m.group(3)]
        if not years:
            raise InvalidFestivalRecordError(f"dates without a year '{text}'")

        instants = []
        for match in matches:
            day, month, year = match.group(1), match.group(2), match.group(3)
            try:
                instants.append(
                    datetime(int(year or years[-1]), int(month), int(day), tzinfo=UTC)
                )
            except ValueError as exc:
                raise InvalidFestivalRecordError(f"invalid date '{text}'") from exc

        return DateRange(start=instants[0], end=instants[-1])

    def _parse_price(self, value: Any) -> Price:
        if value is None:
            return Price(currency=self.default_currency)
        if _is_number(value):
            amount = _finite_float(value, "price")
            return Price(
                currency=self.default_currency, day_pass=amount, full_pass=amount
            )
        if not isinstance(value, dict):
            raise InvalidFestivalRecordError("price is neither a number nor an object")

        amounts = {}
        for label, keys in (
            ("day pass", ("dayPass", "day_pass")),
            ("full pass", ("fullPass", "full_pass")),
        ):
            amount = _first(value, *keys)
            if amount is None:
                amounts[label] = 0.0
            elif _is_number(amount):
                amounts[label] = _finite_float(amount, label)
            else:
                raise InvalidFestivalRecordError(f"{label} is not numeric")

        currency = value.get("currency")
        if not isinstance(currency, str) or not currency.strip():
            currency = self.default_currency
        return Price(
            currency=currency.strip(),
            day_pass=amounts["day pass"],
            full_pass=amounts["full pass"],
        )

    @staticmethod
    def _parse_genres(value: Any) -> tuple[str, ...]:
        if value is None:
            return ()
        if not isinstance(value, list | tuple):
            raise InvalidFestivalRecordError("genres is not a list")
        return tuple(
            genre.strip() for genre in value if isinstance(genre, str) and genre.strip()
        )

    @staticmethod
    def _parse_popularity(value: Any) -> float:
        if value is None:
            return 0.0
        if not _is_number(value):
            raise InvalidFestivalRecordError("popularity is not numeric")
        return _finite_float(value, "popularity")

    @staticmethod
    def _parse_age_limit(value: Any) -> int | None:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return None

    @staticmethod
    def _optional_text(raw: dict[str, Any], *keys: str) -> str | None:
        value = _first(raw, *keys)
        return value.strip() if isinstance(value, str) and value.strip() else None
