"""
geo_math.py — Great-circle distance helpers.

All distances in this service are kilometres on a spherical Earth
(R = 6371 km). NaN inputs propagate NaN; callers filter invalid
coordinates before they get here.
"""

from __future__ import annotations

import math

EARTH_RADIUS_KM = 6371.0


def to_radians(degrees: float) -> float:
    return degrees * (math.pi / 180)


def to_degrees(radians: float) -> float:
    return radians * (180 / math.pi)


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance between two lat/lon points in km."""
    d_lat = to_radians(lat2 - lat1)
    d_lon = to_radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(to_radians(lat1)) * math.cos(to_radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
