"""
Purpose: Great-circle distance between two coordinates.
What it does:
Haversine on a spherical earth. Good enough for "which drivers are within
a few km" questions; not a routing engine.
"""

from __future__ import annotations

import math
from typing import Tuple

#internal coordinate type: (lat, lon)
LatLon = Tuple[float, float]

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    if lat1 == lat2 and lon1 == lon2:
        return 0.0

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # clamp guards against a drifting just past 1.0 for antipodal points
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_km(a: LatLon, b: LatLon) -> float:
    """
    Distance in kilometres between two (lat, lon) pairs.
    Symmetric, and exactly 0.0 when a == b.
    """
    return haversine_km(a[0], a[1], b[0], b[1])
