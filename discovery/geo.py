"""Great-circle distance and rough drive-time estimates.

These are straight-line estimates at an assumed urban speed, not routing
results.
"""

from __future__ import annotations

import math

EARTH_RADIUS_KM = 6371.0
AVERAGE_SPEED_KMH = 50.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lng / 2) ** 2
    )
    # Rounding can push a a hair outside [0, 1].
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def estimate_drive_minutes(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> int:
    """Estimated drive time between two points, in whole minutes."""
    distance = haversine_km(lat1, lng1, lat2, lng2)
    return int(round(distance / AVERAGE_SPEED_KMH * 60))


def radius_km_from_minutes(travel_minutes: float) -> float:
    """Search radius covered by *travel_minutes* of driving."""
    return travel_minutes / 60 * AVERAGE_SPEED_KMH
