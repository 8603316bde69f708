# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from ride.geo import CoordinateGeocoder, Geocoder, distance_km, price_for_distance


def test_distance_is_zero_for_same_point() -> None:
    assert distance_km(4.60, -74.08, 4.60, -74.08) == 0.0


def test_distance_of_one_hundredth_degree_latitude() -> None:
    # ~1.11 km per 0.01 degree of latitude
    assert distance_km(4.60, -74.08, 4.61, -74.08) == pytest.approx(1.112, abs=0.01)


def test_price_rounds_up_to_hundreds() -> None:
    assert price_for_distance(0.0) == 3_000
    assert price_for_distance(1.0) == 4_200
    assert price_for_distance(1.01) == 4_300
    assert price_for_distance(-2.0) == 3_000


@pytest.mark.asyncio
async def test_coordinate_geocoder_renders_coordinates() -> None:
    geocoder = CoordinateGeocoder()
    assert isinstance(geocoder, Geocoder)
    assert await geocoder.reverse(4.6, -74.08) == "Ubicación 4.6000, -74.0800"
