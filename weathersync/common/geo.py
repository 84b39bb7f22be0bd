"""
Geographic utilities for weathersync.

This module provides the point containment checks used to answer
"which alerts cover this point" from stored zone and alert rings.
Coordinates are (lon, lat).
"""

from typing import Sequence, Tuple
from weathersync.core.models import Point, Polygon

def point_in_ring(point: Point, ring: Sequence[Tuple[float, float]]) -> bool:
    """
    Checks whether a point lies inside a ring using ray casting.

    Args:
        point: Point to check (lon, lat)
        ring: Ring vertices [(lon, lat), ...]; closing vertex optional

    Returns:
        True if the point is inside the ring
    """
    if len(ring) < 3:
        return False

    x, y = point
    n = len(ring)
    inside = False

    p1x, p1y = ring[0]
    for i in range(1, n + 1):
        p2x, p2y = ring[i % n]
        if min(p1y, p2y) < y <= max(p1y, p2y) and x <= max(p1x, p2x):
            if p1x == p2x:
                inside = not inside
            else:
                xinters = (y - p1y) * (p2x - p1x) / (p2y - p1y) + p1x
                if x <= xinters:
                    inside = not inside
        p1x, p1y = p2x, p2y

    return inside

def bounding_box(ring: Sequence[Tuple[float, float]]) -> Tuple[float, float, float, float]:
    """(min_lon, min_lat, max_lon, max_lat) of a ring."""
    if not ring:
        return (0, 0, 0, 0)

    lons = [p[0] for p in ring]
    lats = [p[1] for p in ring]

    return (min(lons), min(lats), max(lons), max(lats))

def polygon_contains(polygon: Polygon, point: Point) -> bool:
    """Inside the perimeter and outside every hole."""
    min_lon, min_lat, max_lon, max_lat = bounding_box(polygon.perimeter)
    lon, lat = point
    if not (min_lon <= lon <= max_lon and min_lat <= lat <= max_lat):
        return False
    if not point_in_ring(point, polygon.perimeter):
        return False
    return not any(point_in_ring(point, hole) for hole in polygon.holes)

def validate_coordinates(lon: float, lat: float) -> bool:
    return -180 <= lon <= 180 and -90 <= lat <= 90
