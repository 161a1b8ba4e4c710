"""Query engine: text match -> genre -> city -> sort.

Everything here is a pure function of its arguments, so the same
``(records, params, coordinates)`` always produces the same ordered view.
All sorts are stable: ties keep their collection order.
"""

import math
from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

from festival_finder.modules.catalog.domain.entities import (
    ALL,
    Festival,
    QueryParams,
    SortKey,
)
from festival_finder.modules.geolocation.domain.distance import distance_km
from festival_finder.modules.geolocation.domain.entities import Coordinates


def normalize_term(text: str) -> str:
    return text.strip().casefold()


def matches_text(festival: Festival, term: str) -> bool:
    """Substring match against name, city or any genre. ``term`` is normalized."""
    if not term:
        return True
    if term in festival.name.casefold():
        return True
    if term in festival.city.casefold():
        return True
    return any(term in genre.casefold() for genre in festival.genres)


def matches_genre(festival: Festival, genre_filter: str) -> bool:
    if genre_filter == ALL:
        return True
    wanted = genre_filter.casefold()
    return any(genre.casefold() == wanted for genre in festival.genres)


def matches_city(festival: Festival, city_filter: str) -> bool:
    if city_filter == ALL:
        return True
    return festival.city.casefold() == city_filter.casefold()


def filter_festivals(
    festivals: Iterable[Festival], params: QueryParams
) -> list[Festival]:
    """Apply the three filter stages in order."""
    result = list(festivals)

    term = normalize_term(params.search_text)
    if result and term:
        result = [f for f in result if matches_text(f, term)]

    if result and params.genre_filter != ALL:
        result = [f for f in result if matches_genre(f, params.genre_filter)]

    if result and params.city_filter != ALL:
        result = [f for f in result if matches_city(f, params.city_filter)]

    return result


def _instant(value: datetime) -> datetime:
    # Naive values are read as UTC so they compare with aware ones.
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def _city_key(festival: Festival) -> str:
    return festival.city.casefold()


_SORT_KEYS: dict[SortKey, Callable[[Festival], Any]] = {
    SortKey.POPULARITY: lambda f: -f.popularity,
    SortKey.DATE: lambda f: _instant(f.dates.start),
    SortKey.PRICE: lambda f: f.price.full_pass,
    SortKey.CITY: _city_key,
}


def sort_by_distance(
    festivals: Sequence[Festival], origin: Coordinates
) -> list[Festival]:
    """Nearest first; festivals without a usable position go last."""

    def key(festival: Festival) -> tuple[int, float]:
        if festival.coordinates is None:
            return (1, 0.0)
        distance = distance_km(origin, festival.coordinates)
        if math.isnan(distance):
            return (1, 0.0)
        return (0, distance)

    return sorted(festivals, key=key)


def sort_festivals(
    festivals: Sequence[Festival],
    sort_key: SortKey,
    coordinates: Coordinates | None,
    *,
    distance_fallback: SortKey = SortKey.CITY,
) -> list[Festival]:
    """Order festivals by ``sort_key``.

    Distance ordering without a current position uses ``distance_fallback``.
    """
    if not festivals:
        return []

    if sort_key is SortKey.DISTANCE:
        if coordinates is not None:
            return sort_by_distance(festivals, coordinates)
        if distance_fallback is SortKey.DISTANCE:
            distance_fallback = SortKey.CITY
        sort_key = distance_fallback

    return sorted(festivals, key=_SORT_KEYS[sort_key])


def derive_view(
    records: Sequence[Festival],
    params: QueryParams,
    coordinates: Coordinates | None = None,
    *,
    distance_fallback: SortKey = SortKey.CITY,
) -> tuple[Festival, ...]:
    """Compute the filtered and sorted view of ``records``."""
    if not records:
        return ()
    filtered = filter_festivals(records, params)
    if not filtered:
        return ()
    return tuple(
        sort_festivals(
            filtered,
            params.sort_key,
            coordinates,
            distance_fallback=distance_fallback,
        )
    )
