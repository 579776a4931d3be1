"""
Geographic points and local planar projections.

Route-scale distance checks run in a transverse mercator projection centered
on the area of interest, where Shapely measures in meters.
"""

from typing import List, NamedTuple, Optional, Sequence, Tuple
from shapely.geometry import LineString, Point
import pyproj


class GeoPoint(NamedTuple):
    """A WGS-84 position in decimal degrees."""

    latitude: float
    longitude: float

    def __str__(self) -> str:
        return f"{self.latitude:.6f},{self.longitude:.6f}"

    @classmethod
    def parse(cls, text: str) -> "GeoPoint":
        """
        Parse a "LAT,LNG" string into a GeoPoint.

        Raises:
            ValueError: If the text is not two comma separated numbers in range
        """
        parts = [part.strip() for part in text.split(",")]
        if len(parts) != 2:
            raise ValueError(f"Expected 'LAT,LNG', got {text!r}")
        latitude, longitude = float(parts[0]), float(parts[1])
        if not -90.0 <= latitude <= 90.0 or not -180.0 <= longitude <= 180.0:
            raise ValueError(f"Coordinate out of range: {text!r}")
        return cls(latitude, longitude)


def bounding_box(points: Sequence[GeoPoint]) -> Tuple[float, float, float, float]:
    """
    Calculate the bounding box of a sequence of points.

    Returns:
        (south, west, north, east) in decimal degrees

    Raises:
        ValueError: If points is empty
    """
    if not points:
        raise ValueError("Cannot compute the bounding box of an empty point list")
    latitudes = [point.latitude for point in points]
    longitudes = [point.longitude for point in points]
    return (min(latitudes), min(longitudes), max(latitudes), max(longitudes))


def create_transverse_mercator_projection(
    bbox: Tuple[float, float, float, float],
) -> pyproj.Proj:
    """
    Build a meter-based transverse mercator projection for a bounding box.

    Distortion stays negligible within a few tens of kilometers of the
    box center, which covers any single trip.
    """
    south, west, north, east = bbox

    center_lat = (south + north) / 2.0
    center_lon = (west + east) / 2.0

    proj_string = f"+proj=tmerc +lat_0={center_lat} +lon_0={center_lon} +k=1 +x_0=0 +y_0=0 +datum=WGS84 +units=m +no_defs"
    return pyproj.Proj(proj_string)


def points_to_linestring(
    points: Sequence[GeoPoint], projection: Optional[pyproj.Proj] = None
) -> LineString:
    """
    Convert a sequence of GeoPoints to a Shapely LineString.

    A single point is doubled so that the result is always a valid (if
    zero-length) LineString.

    Args:
        points: Sequence of GeoPoint objects
        projection: Projection to apply; without one the LineString is built
            from raw (longitude, latitude) pairs

    Raises:
        ValueError: If points is empty
    """
    if not points:
        raise ValueError("At least one position is required to create a LineString.")

    coords: List[GeoPoint] = list(points)
    if len(coords) == 1:
        coords = coords * 2

    lons = [point.longitude for point in coords]
    lats = [point.latitude for point in coords]

    if projection is not None:
        x_coords, y_coords = projection(lons, lats)
        return LineString(list(zip(x_coords, y_coords)))

    return LineString(list(zip(lons, lats)))


def project_point(point: GeoPoint, projection: pyproj.Proj) -> Point:
    """Project a single GeoPoint into a Shapely Point in projected meters."""
    x, y = projection(point.longitude, point.latitude)
    return Point(x, y)


def unproject_point(point: Point, projection: pyproj.Proj) -> GeoPoint:
    """Convert a projected Shapely Point back into a GeoPoint."""
    lon, lat = projection(point.x, point.y, inverse=True)
    return GeoPoint(latitude=lat, longitude=lon)
