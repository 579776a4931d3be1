#!/usr/bin/env python3
"""
Route retrieval from the directions backend.

Backend payloads are decoded into Route objects here. Every failure mode
degrades to a synthetic straight-line route so that callers always have a
path to render and navigate.
"""

from typing import Any, Dict, List, Optional, Protocol
import asyncio
import logging

from . import geodesy, polyline
from .config import NavigationConfig
from .errors import BackendUnavailable, MalformedResponse
from .formatting import format_distance, format_duration, strip_markup
from .geometry import GeoPoint
from .models import Maneuver, RouteSource, RouteStep
from .route import Route

logger = logging.getLogger(__name__)

FALLBACK_INSTRUCTION = "Go straight to destination"


class DirectionsBackend(Protocol):
    def directions(
        self,
        origin: GeoPoint,
        destination: GeoPoint,
        alternatives: bool = False,
        live_traffic: bool = False,
        max_retries: Optional[int] = None,
    ) -> Dict[str, Any]: ...


def _location(data: Dict[str, Any]) -> GeoPoint:
    return GeoPoint(latitude=float(data["lat"]), longitude=float(data["lng"]))


def parse_step(step: Dict[str, Any], index: int, index_in_leg: int) -> RouteStep:
    """
    Decode one backend step.

    Raises:
        MalformedResponse: If a required field is missing or has the wrong type
    """
    try:
        distance_info = step["distance"]
        duration_info = step["duration"]
        return RouteStep(
            index=index,
            instruction=strip_markup(step.get("html_instructions", "")),
            maneuver=Maneuver.from_backend(step.get("maneuver"), index_in_leg),
            distance=float(distance_info["value"]),
            duration=float(duration_info["value"]),
            distance_text=distance_info.get("text") or format_distance(distance_info["value"]),
            duration_text=duration_info.get("text") or format_duration(duration_info["value"]),
            end_location=_location(step["end_location"]),
        )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise MalformedResponse(f"Malformed step {index}: {e!r}") from e


def _polyline_points(data: Dict[str, Any], key: str) -> List[GeoPoint]:
    """
    Decode the encoded polyline stored under data[key], if any.

    Raises:
        MalformedResponse: If the field is present but not a polyline object
    """
    container = data.get(key)
    if not container:
        return []
    if not isinstance(container, dict):
        raise MalformedResponse(f"Expected a polyline object for {key!r}, got {container!r}")
    encoded = container.get("points")
    if not encoded:
        return []
    if not isinstance(encoded, str):
        raise MalformedResponse(f"Expected encoded points for {key!r}, got {encoded!r}")
    return polyline.decode(encoded)


def _extend_path(path: List[GeoPoint], points: List[GeoPoint]) -> None:
    """Append points, skipping the shared vertex where consecutive steps meet."""
    for point in points:
        if not path or path[-1] != point:
            path.append(point)


def parse_route(data: Dict[str, Any]) -> Route:
    """
    Decode one backend route alternative.

    Steps that fail to decode are dropped; the rest of the route survives.
    The dense path is the concatenation of the step polylines, or the
    overview polyline when no step geometry is present.

    Raises:
        MalformedResponse: If the route has no legs, malformed leg totals, or
            an empty path
    """
    try:
        legs = data["legs"]
        if not isinstance(legs, list) or not legs:
            raise MalformedResponse("Route has no legs")

        path: List[GeoPoint] = []
        steps: List[RouteStep] = []
        total_distance = 0.0
        total_duration = 0.0
        traffic_durations: List[float] = []

        for leg in legs:
            total_distance += float(leg["distance"]["value"])
            total_duration += float(leg["duration"]["value"])
            if "duration_in_traffic" in leg:
                traffic_durations.append(float(leg["duration_in_traffic"]["value"]))

            for index_in_leg, raw_step in enumerate(leg.get("steps") or []):
                try:
                    step = parse_step(raw_step, len(steps), index_in_leg)
                    points = _polyline_points(raw_step, "polyline")
                except MalformedResponse as e:
                    logger.debug(f"Dropping step: {e}")
                    continue
                steps.append(step)
                _extend_path(path, points)

        if not path:
            path = _polyline_points(data, "overview_polyline")

        if not path:
            raise MalformedResponse("Route has an empty decoded path")

        duration_in_traffic = sum(traffic_durations) if len(traffic_durations) == len(legs) else None

        return Route(
            points=path,
            steps=steps,
            distance=total_distance,
            duration=total_duration,
            summary=data.get("summary", ""),
            source=RouteSource.BACKEND,
            duration_in_traffic=duration_in_traffic,
        )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise MalformedResponse(f"Malformed route: {e!r}") from e


def parse_directions(payload: Dict[str, Any]) -> List[Route]:
    """
    Decode every route alternative in a directions payload, in backend order.

    Malformed alternatives are dropped and their siblings kept.

    Raises:
        MalformedResponse: If the payload has no list of routes
    """
    if not isinstance(payload, dict):
        raise MalformedResponse(f"Directions payload is not an object: {payload!r:.80}")
    alternatives = payload.get("routes") or []
    if not isinstance(alternatives, list):
        raise MalformedResponse("Directions payload routes is not a list")

    routes = []
    for i, data in enumerate(alternatives):
        try:
            routes.append(parse_route(data))
        except MalformedResponse as e:
            logger.warning(f"Dropping route alternative {i}: {e}")
    return routes


def fallback_route(
    origin: GeoPoint,
    destination: GeoPoint,
    point_count: int = 50,
    speed_mps: float = 13.9,
) -> Route:
    """
    Build a synthetic straight-line route.

    The path is the origin, point_count evenly interpolated points, and the
    destination. Duration is the great-circle distance at speed_mps.
    """
    segments = point_count + 1
    path = [origin]
    path.extend(geodesy.interpolate(origin, destination, i / segments) for i in range(1, segments))
    path.append(destination)

    total_distance = geodesy.distance(origin, destination)
    total_duration = total_distance / speed_mps

    step = RouteStep(
        index=0,
        instruction=FALLBACK_INSTRUCTION,
        maneuver=Maneuver.STRAIGHT,
        distance=total_distance,
        duration=total_duration,
        distance_text=format_distance(total_distance),
        duration_text=format_duration(total_duration),
        end_location=destination,
    )

    return Route(
        points=path,
        steps=[step],
        distance=total_distance,
        duration=total_duration,
        summary="Direct line (directions unavailable)",
        source=RouteSource.FALLBACK,
    )


class RouteProvider:
    """Fetches routes from the directions backend, degrading to a fallback route."""

    def __init__(self, client: DirectionsBackend, config: Optional[NavigationConfig] = None):
        self.client = client
        self.config = config or NavigationConfig()
        self.fallback_count = 0

    def fetch_routes_sync(
        self, origin: GeoPoint, destination: GeoPoint, want_alternatives: bool = True
    ) -> List[Route]:
        """
        Fetch routes between two points, blocking.

        Returns:
            Backend routes in backend order (first is primary), or a single
            fallback route. Never raises for backend conditions.
        """
        try:
            payload = self.client.directions(origin, destination, alternatives=want_alternatives)
            routes = parse_directions(payload)
            if not routes:
                raise MalformedResponse("No decodable route in directions payload")
        except (BackendUnavailable, MalformedResponse) as e:
            logger.warning(f"Directions unavailable ({e}); using straight-line fallback route")
            return [self._fallback(origin, destination)]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(
                f"Could not decode directions ({e!r}); using straight-line fallback route"
            )
            return [self._fallback(origin, destination)]

        logger.debug(
            f"Fetched {len(routes)} route(s) from {origin} to {destination}: "
            + ", ".join(f"{r.distance:.0f} m/{r.duration:.0f} s" for r in routes)
        )
        return routes

    async def fetch_routes(
        self, origin: GeoPoint, destination: GeoPoint, want_alternatives: bool = True
    ) -> List[Route]:
        """Fetch routes without blocking the event loop; see fetch_routes_sync."""
        return await asyncio.to_thread(
            self.fetch_routes_sync, origin, destination, want_alternatives
        )

    def _fallback(self, origin: GeoPoint, destination: GeoPoint) -> Route:
        self.fallback_count += 1
        return fallback_route(
            origin,
            destination,
            self.config.fallback_point_count,
            self.config.fallback_speed_mps,
        )
