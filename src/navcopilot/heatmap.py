"""
Live traffic-intensity sampling over a bounded area.

A square grid is laid over the disc around a center and each grid point
inside the disc is probed with a short live-traffic route. The ratio of
free-flow to live duration gives the local speed ratio.
"""

from typing import Any, Dict, List, Optional
import asyncio
import logging
import math
import random

from . import geodesy
from .config import NavigationConfig
from .errors import BackendUnavailable, MalformedResponse
from .geometry import GeoPoint
from .models import HeatmapSample, TrafficDataPoint
from .route_provider import DirectionsBackend

logger = logging.getLogger(__name__)


def grid_points(center: GeoPoint, radius: float, spacing: float = 500.0) -> List[GeoPoint]:
    """
    Grid points inside a disc, spaced evenly in meters around the center.

    The grid covers the disc's bounding box; points farther than radius from
    the center are discarded. The center itself is always a grid point.
    """
    if radius < 0 or spacing <= 0:
        return []

    dlat = math.degrees(spacing / geodesy.EARTH_RADIUS_M)
    cos_lat = math.cos(math.radians(center.latitude))
    # Longitude spacing degenerates at the poles; fall back to the latitude step there
    dlng = math.degrees(spacing / (geodesy.EARTH_RADIUS_M * cos_lat)) if cos_lat > 1e-9 else dlat

    steps = int(radius // spacing)
    points = []
    for i in range(-steps, steps + 1):
        for j in range(-steps, steps + 1):
            point = GeoPoint(center.latitude + i * dlat, center.longitude + j * dlng)
            if geodesy.distance(center, point) <= radius:
                points.append(point)
    return points


def speed_ratio_from_payload(payload: Dict[str, Any]) -> float:
    """
    Free-flow to live duration ratio of the first leg of a directions payload.

    Raises:
        MalformedResponse: If the payload has no leg or no live-traffic duration
    """
    try:
        leg = payload["routes"][0]["legs"][0]
        free_flow = float(leg["duration"]["value"])
        live = float(leg["duration_in_traffic"]["value"])
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise MalformedResponse(f"Probe payload has no live-traffic timing: {e!r}") from e

    if free_flow <= 0 or live <= 0:
        return 1.0
    return max(0.0, min(1.0, free_flow / live))


class TrafficHeatmapSampler:
    """Samples a traffic-intensity field with bounded-concurrency probes."""

    def __init__(
        self,
        client: DirectionsBackend,
        config: Optional[NavigationConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        self.client = client
        self.config = config or NavigationConfig()
        self.rng = rng or random.Random()

    def probe(self, point: GeoPoint) -> Optional[TrafficDataPoint]:
        """
        Measure traffic at one point with a micro-route in a random direction.

        Returns:
            The reading, or None when the probe failed
        """
        target = geodesy.destination_point(
            point, self.config.probe_distance, self.rng.uniform(0.0, 360.0)
        )
        try:
            payload = self.client.directions(point, target, live_traffic=True, max_retries=0)
            ratio = speed_ratio_from_payload(payload)
        except (BackendUnavailable, MalformedResponse) as e:
            logger.debug(f"Traffic probe at {point} failed: {e}")
            return None
        return TrafficDataPoint(location=point, speed_ratio=ratio)

    async def sample_area(self, center: GeoPoint, radius: Optional[float] = None) -> HeatmapSample:
        """
        Sample traffic over the disc around a center.

        Probes run in batches of probe_batch_size with probe_batch_pause
        seconds between batches. Failed probes are left out of the sample.
        """
        radius = self.config.heatmap_radius if radius is None else radius
        points = grid_points(center, radius, self.config.heatmap_spacing)
        batch_size = max(1, self.config.probe_batch_size)

        readings: List[TrafficDataPoint] = []
        for start in range(0, len(points), batch_size):
            if start > 0 and self.config.probe_batch_pause > 0:
                await asyncio.sleep(self.config.probe_batch_pause)
            batch = points[start : start + batch_size]
            results = await asyncio.gather(
                *(asyncio.to_thread(self.probe, point) for point in batch),
                return_exceptions=True,
            )
            for point, result in zip(batch, results):
                if isinstance(result, Exception):
                    logger.warning(f"Traffic probe at {point} raised {result!r}")
                elif result is not None:
                    readings.append(result)

        sample = HeatmapSample(
            center=center, radius=radius, points=readings, probes_attempted=len(points)
        )
        logger.debug(
            f"Heatmap around {center}: {len(readings)}/{len(points)} probes succeeded, "
            f"average intensity {sample.average_intensity}"
        )
        return sample
