"""Great-circle helpers on a spherical Earth.

All functions are pure and allocate no shared state.
"""

from __future__ import annotations

import math
import random

from geosim._constants import EARTH_RADIUS_M
from geosim.models.position import Position


def distance(a: Position, b: Position) -> float:
    """Haversine distance between *a* and *b* in meters."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = math.radians(b.latitude - a.latitude)
    d_lon = math.radians(b.longitude - a.longitude)

    sin_d_lat = math.sin(d_lat / 2)
    sin_d_lon = math.sin(d_lon / 2)
    h = sin_d_lat * sin_d_lat + math.cos(lat1) * math.cos(lat2) * sin_d_lon * sin_d_lon
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_M * c


def bearing(a: Position, b: Position) -> float:
    """Initial bearing from *a* to *b* in degrees, in ``[0, 360)``."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lon = math.radians(b.longitude - a.longitude)
    y = math.sin(d_lon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(d_lon)
    result = (math.degrees(math.atan2(y, x)) + 360.0) % 360.0
    # -0.0 % 360 and rounding can land exactly on 360.0
    return 0.0 if result >= 360.0 else result


def destination(origin: Position, distance_m: float, bearing_deg: float) -> Position:
    """Project *distance_m* meters from *origin* along *bearing_deg*.

    Longitude of the result is normalized into ``(-180, 180]``.
    """
    lat1 = math.radians(origin.latitude)
    lon1 = math.radians(origin.longitude)
    theta = math.radians(bearing_deg)
    delta = distance_m / EARTH_RADIUS_M

    sin_lat2 = math.sin(lat1) * math.cos(delta) + math.cos(lat1) * math.sin(delta) * math.cos(theta)
    lat2 = math.asin(min(1.0, max(-1.0, sin_lat2)))

    y = math.sin(theta) * math.sin(delta) * math.cos(lat1)
    x = math.cos(delta) - math.sin(lat1) * math.sin(lat2)
    lon2 = math.degrees(lon1 + math.atan2(y, x))

    return Position(latitude=math.degrees(lat2), longitude=normalize_longitude(lon2))


def normalize_longitude(lon_deg: float) -> float:
    """Wrap a longitude into ``(-180, 180]``."""
    wrapped = math.fmod(lon_deg + 180.0, 360.0)
    if wrapped <= 0.0:
        wrapped += 360.0
    return wrapped - 180.0


def random_position(corner1: Position, corner2: Position, rng: random.Random | None = None) -> Position:
    """Uniformly sample a position inside the box spanned by two corners."""
    rng = rng or random.Random()
    lat_min, lat_max = sorted((corner1.latitude, corner2.latitude))
    lon_min, lon_max = sorted((corner1.longitude, corner2.longitude))
    return Position(
        latitude=rng.random() * (lat_max - lat_min) + lat_min,
        longitude=rng.random() * (lon_max - lon_min) + lon_min,
    )
