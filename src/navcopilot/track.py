"""
Recorded GPS tracks for replaying a drive through a navigation session.
"""

from datetime import datetime
from typing import List, NamedTuple, Optional, TextIO
import logging

import gpxpy
import gpxpy.gpx

from .geometry import GeoPoint

logger = logging.getLogger(__name__)


class TrackPoint(NamedTuple):
    position: GeoPoint
    time: Optional[datetime] = None


def parse_track(file_input: TextIO) -> List[TrackPoint]:
    """
    Parse a GPX document and concatenate all tracks and segments.

    Raises:
        ValueError: If the document contains no track points
        gpxpy.gpx.GPXException: If the GPX is malformed
    """
    gpx_data = gpxpy.parse(file_input)

    points = [
        TrackPoint(GeoPoint(point.latitude, point.longitude), point.time)
        for track in gpx_data.tracks
        for segment in track.segments
        for point in segment.points
    ]
    if not points:
        raise ValueError("GPX file contains no track points")

    logger.debug(f"Parsed {len(points)} track points from GPX file")
    return points


def load_track(filename: str) -> List[TrackPoint]:
    """
    Load a GPX file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        PermissionError: If the file can't be read
        gpxpy.gpx.GPXException: If the GPX is malformed
    """
    logger.debug(f"Reading GPX file: {filename}")
    with open(filename, "r", encoding="utf-8") as f:
        return parse_track(f)
