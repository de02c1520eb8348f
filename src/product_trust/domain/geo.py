"""Great-circle geometry for scan locations."""

from __future__ import annotations

import math

from product_trust.domain.entities import GeoPoint

# IUGG mean Earth radius
EARTH_RADIUS_KM = 6371.0088


def great_circle_km(a: GeoPoint, b: GeoPoint) -> float:
    """Haversine distance between two points in kilometres."""
    lat1, lon1 = math.radians(a.latitude), math.radians(a.longitude)
    lat2, lon2 = math.radians(b.latitude), math.radians(b.longitude)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


def implied_speed_kmh(distance_km: float, hours: float) -> float:
    """Travel speed needed to cover ``distance_km`` in ``hours``."""
    if hours <= 0:
        return math.inf if distance_km > 0 else 0.0
    return distance_km / hours
