"""Great-circle helpers for WGS84 coordinates."""

import math
from typing import Optional, Tuple

EARTH_RADIUS_M = 6371000  # Earth radius in meters


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Calculate Haversine distance between two points in meters.

    Args:
        lat1, lng1: First point coordinates
        lat2, lng2: Second point coordinates

    Returns:
        Distance in meters
    """
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(dlng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def radius_bounds(
    lat: float, lng: float, radius_m: float
) -> Tuple[float, float, Optional[Tuple[float, float]]]:
    """
    Conservative lat/lng bounds of a circle on the sphere.

    Returns:
        (min_lat, max_lat, lng_range) where lng_range is None when the circle
        covers every longitude (it reaches a pole or is wider than a hemisphere).
        lng_range may have min > max when it wraps the antimeridian.
    """
    angular = radius_m / EARTH_RADIUS_M
    if angular >= math.pi:
        return -90.0, 90.0, None

    dlat = math.degrees(angular)
    min_lat = lat - dlat
    max_lat = lat + dlat
    if min_lat <= -90.0 or max_lat >= 90.0:
        return max(min_lat, -90.0), min(max_lat, 90.0), None

    ratio = math.sin(angular) / math.cos(math.radians(lat))
    if ratio >= 1.0:
        return min_lat, max_lat, None

    dlng = math.degrees(math.asin(ratio))
    min_lng = wrap_longitude(lng - dlng)
    max_lng = wrap_longitude(lng + dlng)
    return min_lat, max_lat, (min_lng, max_lng)


def wrap_longitude(lng: float) -> float:
    if -180.0 <= lng <= 180.0:
        return lng
    return ((lng + 180.0) % 360.0) - 180.0


def longitude_in_range(lng: float, min_lng: float, max_lng: float) -> bool:
    """Inclusive range test that understands ranges crossing the antimeridian."""
    if min_lng <= max_lng:
        return min_lng <= lng <= max_lng
    return lng >= min_lng or lng <= max_lng
