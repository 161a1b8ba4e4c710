"""Great-circle distance."""

import math

from festival_finder.modules.geolocation.domain.entities import Coordinates

EARTH_RADIUS_KM = 6371.0


def distance_km(a: Coordinates, b: Coordinates) -> float:
    """Haversine distance between two points in kilometres.

    Non-finite coordinates yield NaN rather than an exception.
    """
    values = (a.latitude, a.longitude, b.latitude, b.longitude)
    if not all(math.isfinite(v) for v in values):
        return math.nan

    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    )
    # Rounding can push antipodal points just above 1.
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, h)))
