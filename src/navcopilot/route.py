#!/usr/bin/env python3
"""
Route data model for navigation.
"""

from typing import List, Optional, Sequence, Tuple
import logging

from shapely.geometry import LineString

from . import geodesy
from .geometry import (
    GeoPoint,
    bounding_box,
    create_transverse_mercator_projection,
    points_to_linestring,
    project_point,
    unproject_point,
)
from .models import RouteSource, RouteStep

logger = logging.getLogger(__name__)


class Route:
    """
    A candidate path with geometry, steps, distance and duration.

    Routes are treated as immutable once constructed. Geometric queries are
    answered in a transverse mercator projection centered on the route, so
    every segment of a route shares the same planar approximation.
    """

    def __init__(
        self,
        points: Sequence[GeoPoint],
        steps: Sequence[RouteStep] = (),
        distance: float = 0.0,
        duration: float = 0.0,
        summary: str = "",
        source: RouteSource = RouteSource.BACKEND,
        duration_in_traffic: Optional[float] = None,
    ):
        """Initializes a Route object.

        Args:
            points: Dense path geometry.
            steps: Maneuver-level steps in order.
            distance: Total distance in meters.
            duration: Total duration in seconds.
            summary: Free-text summary (e.g. main road names).
            source: Whether the route came from the backend or the fallback.
            duration_in_traffic: Live-traffic duration in seconds, when known.

        Raises:
            ValueError: If points is empty.
        """
        if not points:
            raise ValueError("Route points cannot be empty")

        self._points: Tuple[GeoPoint, ...] = tuple(points)
        self._steps: Tuple[RouteStep, ...] = tuple(steps)
        self.distance = float(distance)
        self.duration = float(duration)
        self.summary = summary
        self.source = source
        self.duration_in_traffic = duration_in_traffic

        self.bbox = bounding_box(self._points)
        self.projection = create_transverse_mercator_projection(self.bbox)
        self.linestring: LineString = points_to_linestring(self._points, self.projection)
        self._cumulative: Optional[List[float]] = None

    @property
    def points(self) -> Tuple[GeoPoint, ...]:
        return self._points

    @property
    def steps(self) -> Tuple[RouteStep, ...]:
        return self._steps

    @property
    def origin(self) -> GeoPoint:
        return self._points[0]

    @property
    def destination(self) -> GeoPoint:
        return self._points[-1]

    @property
    def is_fallback(self) -> bool:
        return self.source == RouteSource.FALLBACK

    @property
    def average_speed(self) -> Optional[float]:
        """Average speed in m/s, or None when distance or duration is degenerate."""
        if self.distance > 0 and self.duration > 0:
            return self.distance / self.duration
        return None

    def __len__(self) -> int:
        """Return number of points in route."""
        return len(self._points)

    def __getitem__(self, index):
        """Allow indexing into points."""
        return self._points[index]

    def __iter__(self):
        """Allow iteration over points."""
        return iter(self._points)

    def __repr__(self) -> str:
        return (
            f"Route({len(self._points)} points, {len(self._steps)} steps, "
            f"{self.distance:.0f} m, {self.duration:.0f} s, source={self.source})"
        )

    def cumulative_distances(self) -> List[float]:
        """Great-circle distance from the route start to each point, memoized."""
        if self._cumulative is None:
            self._cumulative = geodesy.cumulative_distances(self._points)
        return self._cumulative

    def distance_to(self, position: GeoPoint) -> float:
        """
        Minimum distance from a position to the route polyline.

        The position is projected onto each segment, clamped to the segment
        ends, in the route's planar projection.

        Args:
            position: Position to measure from

        Returns:
            Distance in meters
        """
        return project_point(position, self.projection).distance(self.linestring)

    def closest_point(self, position: GeoPoint) -> GeoPoint:
        """The point on the route polyline closest to the position."""
        projected = project_point(position, self.projection)
        along = self.linestring.project(projected)
        return unproject_point(self.linestring.interpolate(along), self.projection)

    def nearest_index(self, position: GeoPoint) -> int:
        """Index of the route vertex closest to the position."""
        return geodesy.nearest_point_index(position, self._points)

    def remaining_distance(self, position: GeoPoint) -> Tuple[float, int]:
        """
        Distance left to travel from a position to the route end.

        The remaining polyline length from the nearest vertex is added to the
        offset between the position and that vertex.

        Returns:
            Tuple of (remaining distance in meters, nearest vertex index)
        """
        index = self.nearest_index(position)
        cumulative = self.cumulative_distances()
        along = cumulative[-1] - cumulative[index]
        offset = geodesy.distance(position, self._points[index])
        return along + offset, index

    def nearest_step(self, position: GeoPoint) -> Tuple[Optional[int], float]:
        """
        Find the step whose end location is closest to a position.

        Returns:
            Tuple of (step index or None when the route has no steps, distance in meters)
        """
        best_index: Optional[int] = None
        best_distance = float("inf")
        for i, step in enumerate(self._steps):
            d = geodesy.distance(position, step.end_location)
            if d < best_distance:
                best_distance = d
                best_index = i
        return best_index, best_distance

    def corridor(self, half_width: float, max_vertices: int = 50) -> List[GeoPoint]:
        """Closed polygon ring tracing a corridor of the given half width around the route."""
        return geodesy.corridor_buffer(self._points, half_width, max_vertices)
