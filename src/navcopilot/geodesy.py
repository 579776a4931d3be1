#!/usr/bin/env python3
"""
Great-circle geodesy on a spherical earth.

Every distance and bearing in navcopilot goes through these functions. None
of them perform I/O and none raise for degenerate input.
"""

from typing import List, Sequence
import logging
import math

from .geometry import GeoPoint

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6371000.0


def distance(a: GeoPoint, b: GeoPoint) -> float:
    """
    Calculate the haversine great-circle distance between two points.

    Args:
        a: First position
        b: Second position

    Returns:
        Distance in meters
    """
    lat1, lon1 = math.radians(a.latitude), math.radians(a.longitude)
    lat2, lon2 = math.radians(b.latitude), math.radians(b.longitude)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2

    # Clamp guards asin against rounding just above 1.0 for antipodal points
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(min(1.0, h)))


def bearing(a: GeoPoint, b: GeoPoint) -> float:
    """
    Calculate the initial bearing from a to b.

    Args:
        a: Start position
        b: End position

    Returns:
        Bearing in degrees in [0, 360). Coincident points give 0.
    """
    if a == b:
        return 0.0

    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlon = math.radians(b.longitude - a.longitude)

    y = math.sin(dlon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlon)

    result = math.degrees(math.atan2(y, x)) % 360.0
    # -0.0 % 360 and tiny negative values can round up to exactly 360.0
    return 0.0 if result >= 360.0 else result


def destination_point(origin: GeoPoint, distance_m: float, bearing_deg: float) -> GeoPoint:
    """
    Project a point forward along a great circle.

    Args:
        origin: Start position
        distance_m: Distance to travel in meters
        bearing_deg: Initial bearing in degrees

    Returns:
        The destination position, with longitude normalized to [-180, 180)
    """
    angular = distance_m / EARTH_RADIUS_M
    theta = math.radians(bearing_deg)
    lat1 = math.radians(origin.latitude)
    lon1 = math.radians(origin.longitude)

    lat2 = math.asin(
        math.sin(lat1) * math.cos(angular)
        + math.cos(lat1) * math.sin(angular) * math.cos(theta)
    )
    lon2 = lon1 + math.atan2(
        math.sin(theta) * math.sin(angular) * math.cos(lat1),
        math.cos(angular) - math.sin(lat1) * math.sin(lat2),
    )

    longitude = (math.degrees(lon2) + 540.0) % 360.0 - 180.0
    return GeoPoint(latitude=math.degrees(lat2), longitude=longitude)


def angle_difference(a: float, b: float) -> float:
    """
    Signed shortest angular difference from heading a to heading b.

    Args:
        a: Reference heading in degrees (e.g. device heading)
        b: Target heading in degrees

    Returns:
        Difference in degrees in (-180, 180]; positive means b is clockwise of a
    """
    diff = (b - a) % 360.0
    if diff > 180.0:
        diff -= 360.0
    return diff


def interpolate(a: GeoPoint, b: GeoPoint, fraction: float) -> GeoPoint:
    """Linearly interpolate between two points in latitude/longitude space."""
    return GeoPoint(
        latitude=a.latitude + (b.latitude - a.latitude) * fraction,
        longitude=a.longitude + (b.longitude - a.longitude) * fraction,
    )


def path_length(path: Sequence[GeoPoint]) -> float:
    """Sum of great-circle segment lengths along a path, in meters."""
    return sum(distance(path[i - 1], path[i]) for i in range(1, len(path)))


def cumulative_distances(path: Sequence[GeoPoint]) -> List[float]:
    """
    Calculate cumulative distances along a path.

    Args:
        path: Sequence of GeoPoints

    Returns:
        List of cumulative distances in meters, with same length as path
    """
    if not path:
        return []

    totals = [0.0]
    for i in range(1, len(path)):
        totals.append(totals[-1] + distance(path[i - 1], path[i]))
    return totals


def nearest_point_index(position: GeoPoint, path: Sequence[GeoPoint]) -> int:
    """
    Find the index of the path vertex closest to a position.

    Returns:
        Index into path, or -1 if path is empty
    """
    best_index = -1
    best_distance = float("inf")
    for i, point in enumerate(path):
        d = distance(position, point)
        if d < best_distance:
            best_distance = d
            best_index = i
    return best_index


def downsample_path(path: Sequence[GeoPoint], max_vertices: int) -> List[GeoPoint]:
    """
    Reduce a path to at most roughly max_vertices points by even-stride selection.

    The final point is always retained.
    """
    points = list(path)
    if max_vertices <= 0 or len(points) <= max_vertices:
        return points

    stride = math.ceil(len(points) / max_vertices)
    sampled = points[::stride]
    if sampled[-1] != points[-1]:
        sampled.append(points[-1])
    return sampled


def corridor_buffer(
    path: Sequence[GeoPoint], half_width_m: float, max_vertices: int = 50
) -> List[GeoPoint]:
    """
    Build a closed polygon tracing a fixed-width corridor around a path.

    Each path point is offset perpendicular to the local bearing (towards the
    next point, or from the previous point for the last one) on both sides.
    The left side runs forward, the right side runs backward, and the ring is
    closed by repeating the first vertex.

    Args:
        path: Path to buffer
        half_width_m: Corridor half width in meters
        max_vertices: Path points beyond this budget are downsampled first

    Returns:
        Closed ring of GeoPoints, or an empty list for paths shorter than 2 points
    """
    points = downsample_path(path, max_vertices)
    if len(points) < 2:
        return []

    left: List[GeoPoint] = []
    right: List[GeoPoint] = []

    for i, point in enumerate(points):
        if i < len(points) - 1:
            local_bearing = bearing(point, points[i + 1])
        else:
            local_bearing = bearing(points[i - 1], point)

        left.append(destination_point(point, half_width_m, (local_bearing - 90.0) % 360.0))
        right.append(destination_point(point, half_width_m, (local_bearing + 90.0) % 360.0))

    right.reverse()
    return left + right + [left[0]]
