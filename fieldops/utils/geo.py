"""Spherical distance helpers."""

from __future__ import annotations

import math

from fieldops.models.geo import GeoPoint

# Radius MongoDB uses for spherical GeoJSON distances.
EARTH_RADIUS_METERS = 6_378_100.0


def haversine_meters(origin: GeoPoint, target: GeoPoint) -> float:
    """Great-circle distance between two points in meters."""

    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(target.latitude)
    d_lat = lat2 - lat1
    d_lng = math.radians(target.longitude - origin.longitude)

    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(a)))
