"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Optional, Sequence

from shapely.geometry import Point, Polygon

from ..models.domain import Coordinate

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def haversine_meters(origin: Coordinate, destination: Coordinate) -> float:
    return haversine_km(origin.lat, origin.lng, destination.lat, destination.lng) * 1000.0


def point_in_polygon(lat: float, lon: float, polygon_coords: Sequence[tuple[float, float]]) -> bool:
    """Return True if the point is inside the polygon denoted by (lat, lon) pairs."""

    polygon = Polygon([(lng, lat) for lat, lng in polygon_coords])
    return polygon.contains(Point(lon, lat))


def polygon_centroid(polygon_coords: Sequence[tuple[float, float]]) -> Coordinate:
    """Centroid of a (lat, lon) polygon, as a Coordinate."""

    centroid = Polygon([(lng, lat) for lat, lng in polygon_coords]).centroid
    return Coordinate(lat=centroid.y, lng=centroid.x)


def parse_coordinate(value: str) -> Optional[Coordinate]:
    """Parse a ``"lat,lng"`` string. Returns None when the value is not a coordinate pair."""

    parts = [part.strip() for part in value.split(",")]
    if len(parts) != 2:
        return None
    try:
        lat, lng = float(parts[0]), float(parts[1])
    except ValueError:
        return None
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
        return None
    return Coordinate(lat=lat, lng=lng)
