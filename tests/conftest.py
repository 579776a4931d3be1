import asyncio
import threading
import time

import pytest

from navcopilot import geodesy, polyline
from navcopilot.config import NavigationConfig
from navcopilot.errors import BackendUnavailable, NoResult
from navcopilot.formatting import format_distance, format_duration
from navcopilot.geometry import GeoPoint
from navcopilot.models import Maneuver, RouteStep
from navcopilot.route import Route

ORIGIN = GeoPoint(21.1904, 81.2849)
DESTINATION = GeoPoint(21.2000, 81.3000)


def straight_path(start, bearing_deg, length_m, count):
    """count + 1 points from start along a bearing, evenly spaced over length_m."""
    return [
        geodesy.destination_point(start, length_m * i / count, bearing_deg)
        for i in range(count + 1)
    ]


def make_step(points, instruction="Head <b>north</b> on Main St", maneuver=None, speed=10.0):
    distance = round(geodesy.path_length(points))
    duration = round(distance / speed)
    step = {
        "distance": {"value": distance, "text": format_distance(distance)},
        "duration": {"value": duration, "text": format_duration(duration)},
        "start_location": {"lat": points[0].latitude, "lng": points[0].longitude},
        "end_location": {"lat": points[-1].latitude, "lng": points[-1].longitude},
        "html_instructions": instruction,
        "polyline": {"points": polyline.encode(points)},
    }
    if maneuver:
        step["maneuver"] = maneuver
    return step


def make_leg(steps, traffic_factor=None):
    distance = sum(step["distance"]["value"] for step in steps)
    duration = sum(step["duration"]["value"] for step in steps)
    leg = {
        "distance": {"value": distance, "text": format_distance(distance)},
        "duration": {"value": duration, "text": format_duration(duration)},
        "steps": steps,
    }
    if traffic_factor is not None:
        leg["duration_in_traffic"] = {"value": round(duration * traffic_factor)}
    return leg


def make_route_payload(path, step_count=2, summary="Main St", speed=10.0):
    """A single-leg backend route whose steps split path into step_count pieces."""
    size = (len(path) - 1) // step_count
    steps = []
    for i in range(step_count):
        end = len(path) - 1 if i == step_count - 1 else (i + 1) * size
        maneuver = None if i == 0 else "turn-left"
        steps.append(make_step(path[i * size : end + 1], maneuver=maneuver, speed=speed))
    return {
        "summary": summary,
        "legs": [make_leg(steps)],
        "overview_polyline": {"points": polyline.encode(path)},
    }


def make_directions_payload(*routes):
    return {"status": "OK", "routes": list(routes)}


def make_place(place_id, name, location, types):
    return {
        "place_id": place_id,
        "name": name,
        "geometry": {"location": {"lat": location.latitude, "lng": location.longitude}},
        "types": list(types),
        "rating": 4.1,
        "user_ratings_total": 120,
        "vicinity": "Near the square",
    }


def make_route(path, step_count=4, speed=10.0, source=None):
    """A Route built directly, with steps ending at evenly spaced path vertices."""
    size = (len(path) - 1) // step_count
    steps = []
    for i in range(step_count):
        end = len(path) - 1 if i == step_count - 1 else (i + 1) * size
        length = geodesy.path_length(path[i * size : end + 1])
        steps.append(
            RouteStep(
                index=i,
                instruction=f"Step {i + 1}",
                maneuver=Maneuver.DEPART if i == 0 else Maneuver.STRAIGHT,
                distance=length,
                duration=length / speed,
                distance_text=format_distance(length),
                duration_text=format_duration(length / speed),
                end_location=path[end],
            )
        )
    total = geodesy.path_length(path)
    kwargs = {}
    if source is not None:
        kwargs["source"] = source
    return Route(path, steps, distance=total, duration=total / speed, **kwargs)


class FakeMapsClient:
    """Stands in for GoogleMapsClient with canned payloads."""

    def __init__(self, directions=None, places=None, probe_ratios=None, probe_delay=0.0):
        self.directions_result = directions
        self.places = places or {}
        self.probe_ratios = list(probe_ratios or [])
        self.probe_delay = probe_delay
        self.directions_calls = []
        self.nearby_calls = []
        self._lock = threading.Lock()
        self.in_flight = 0
        self.max_in_flight = 0

    def directions(self, origin, destination, alternatives=False, live_traffic=False, max_retries=None):
        self.directions_calls.append(
            {
                "origin": origin,
                "destination": destination,
                "alternatives": alternatives,
                "live_traffic": live_traffic,
                "max_retries": max_retries,
            }
        )
        if live_traffic:
            return self._probe()
        if isinstance(self.directions_result, Exception):
            raise self.directions_result
        if self.directions_result is None:
            raise NoResult()
        return self.directions_result

    def _probe(self):
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            ratio = self.probe_ratios.pop(0) if self.probe_ratios else None
        try:
            if self.probe_delay:
                time.sleep(self.probe_delay)
            if ratio is None:
                raise BackendUnavailable("probe failed", "UNKNOWN_ERROR")
            return {
                "status": "OK",
                "routes": [
                    {
                        "legs": [
                            {
                                "duration": {"value": round(ratio * 1000)},
                                "duration_in_traffic": {"value": 1000},
                            }
                        ]
                    }
                ],
            }
        finally:
            with self._lock:
                self.in_flight -= 1

    def nearby_search(self, center, radius, place_type):
        self.nearby_calls.append(place_type)
        result = self.places.get(place_type)
        if isinstance(result, Exception):
            raise result
        if not result:
            raise NoResult()
        return {"status": "OK", "results": result}


class FakeRouteProvider:
    """Async route provider returning prepared routes, optionally held behind a gate."""

    def __init__(self, routes, reroutes=None):
        self.routes = routes
        self.reroutes = reroutes
        self.calls = []
        self.gates = {}

    async def fetch_routes(self, origin, destination, want_alternatives=True):
        self.calls.append((origin, destination, want_alternatives))
        gate = self.gates.get(destination)
        if gate is not None:
            await gate.wait()
        await asyncio.sleep(0)
        if not want_alternatives and self.reroutes is not None:
            return list(self.reroutes)
        return list(self.routes)

    @property
    def reroute_calls(self):
        return [call for call in self.calls if not call[2]]


@pytest.fixture
def config():
    return NavigationConfig(
        place_request_spacing=0.0,
        probe_batch_pause=0.0,
        heatmap_debounce=0.01,
        search_debounce=0.01,
    )


@pytest.fixture
def north_path():
    """A 2 km path due north of the origin with 20 segments."""
    return straight_path(ORIGIN, 0.0, 2000.0, 20)


@pytest.fixture
def north_route(north_path):
    return make_route(north_path, step_count=4)
