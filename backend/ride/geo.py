"""
Geometry, pricing and reverse-geocoding collaborators.

distance_km and price_for_distance are pure. Reverse geocoding is an
external capability behind the Geocoder protocol; CoordinateGeocoder is the
offline default used by the demo.
"""

from __future__ import annotations

import math
from typing import Protocol, runtime_checkable

from constants import (
    EARTH_RADIUS_KM,
    PRICE_BASE_FARE,
    PRICE_PER_KM,
    PRICE_ROUNDING,
)


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle (haversine) distance in kilometres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def price_for_distance(distance: float) -> int:
    """
    Fare in COP: base fare plus a per-km rate, rounded up to PRICE_ROUNDING.

    Negative distances are treated as zero.
    """
    raw = PRICE_BASE_FARE + max(distance, 0.0) * PRICE_PER_KM
    return int(math.ceil(raw / PRICE_ROUNDING) * PRICE_ROUNDING)


@runtime_checkable
class Geocoder(Protocol):
    async def reverse(self, lat: float, lng: float) -> str: ...


class CoordinateGeocoder:
    """Offline geocoder: renders the coordinate itself as the address."""

    async def reverse(self, lat: float, lng: float) -> str:
        return f"Ubicación {lat:.4f}, {lng:.4f}"
