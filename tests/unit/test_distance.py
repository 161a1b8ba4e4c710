"""Tests for the Haversine distance calculator."""

import math

import pytest

from festival_finder.modules.geolocation.domain.distance import (
    EARTH_RADIUS_KM,
    distance_km,
)
from festival_finder.modules.geolocation.domain.entities import Coordinates

OSLO = Coordinates(latitude=59.9139, longitude=10.7522)
BERGEN = Coordinates(latitude=60.3913, longitude=5.3221)


def test_same_point_is_zero() -> None:
    assert distance_km(OSLO, OSLO) == 0.0


def test_oslo_to_bergen() -> None:
    assert 300 < distance_km(OSLO, BERGEN) < 310


def test_symmetric() -> None:
    assert distance_km(OSLO, BERGEN) == pytest.approx(distance_km(BERGEN, OSLO))


def test_one_degree_of_latitude() -> None:
    a = Coordinates(latitude=10.0, longitude=20.0)
    b = Coordinates(latitude=11.0, longitude=20.0)
    assert distance_km(a, b) == pytest.approx(EARTH_RADIUS_KM * math.pi / 180)


def test_antipodal_points() -> None:
    a = Coordinates(latitude=0.0, longitude=0.0)
    b = Coordinates(latitude=0.0, longitude=180.0)
    assert distance_km(a, b) == pytest.approx(EARTH_RADIUS_KM * math.pi)


@pytest.mark.parametrize(
    "bad",
    [
        Coordinates(latitude=math.nan, longitude=10.0),
        Coordinates(latitude=59.0, longitude=math.nan),
        Coordinates(latitude=math.inf, longitude=10.0),
    ],
)
def test_invalid_input_propagates_nan(bad: Coordinates) -> None:
    assert math.isnan(distance_km(OSLO, bad))
    assert math.isnan(distance_km(bad, OSLO))
