# utils/geofence.py

import math
from math import radians, sin, cos, sqrt, atan2
from typing import Optional

from core.errors import InvalidInput

EARTH_RADIUS_M = 6371000


def haversine_dist(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    φ1, φ2 = radians(lat1), radians(lat2)
    Δφ = radians(lat2 - lat1)
    Δλ = radians(lng2 - lng1)

    a = sin(Δφ/2)**2 + cos(φ1) * cos(φ2) * sin(Δλ/2)**2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_M * c


def distance_within_radius(
    lat: float,
    lng: float,
    center_lat: float,
    center_lng: float,
    radius_m: float
) -> Optional[float]:
    """Distance to the centre when the point is inside the fence, else None."""
    distance = haversine_dist(lat, lng, center_lat, center_lng)
    # Inclusive boundary: a tap exactly on the edge belongs to the zone
    if distance <= radius_m:
        return distance
    return None


def validate_coordinates(lat, lng) -> None:
    """Reject NaN, infinities, non-numbers and out-of-range lat/lng."""
    for label, value, bound in (("latitude", lat, 90.0), ("longitude", lng, 180.0)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidInput(f"{label} must be a number.")
        if not math.isfinite(value):
            raise InvalidInput(f"{label} must be finite.")
        if abs(value) > bound:
            raise InvalidInput(f"{label} must be within ±{bound:g} degrees.")


def validate_radius(radius_m, min_radius: float, max_radius: float) -> None:
    if isinstance(radius_m, bool) or not isinstance(radius_m, (int, float)):
        raise InvalidInput("radius_meters must be a number.")
    if not math.isfinite(radius_m) or radius_m <= 0:
        raise InvalidInput("radius_meters must be a positive number.")
    if not min_radius <= radius_m <= max_radius:
        raise InvalidInput(
            f"radius_meters must be between {min_radius:g} and {max_radius:g}."
        )
