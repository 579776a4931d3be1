import pytest

from navcopilot import geodesy
from navcopilot.geometry import GeoPoint
from navcopilot.models import RouteSource
from navcopilot.route import Route

from conftest import ORIGIN, make_route, straight_path


def test_route_creation_and_basic_properties():
    """
    Tests basic Route creation, point storage, length, indexing, and iteration.
    """
    pos1 = GeoPoint(latitude=10.0, longitude=20.0)
    pos2 = GeoPoint(latitude=10.1, longitude=20.1)
    pos3 = GeoPoint(latitude=10.2, longitude=20.2)
    my_position_list = [pos1, pos2, pos3]

    route = Route(my_position_list, distance=31000.0, duration=1800.0, summary="NH 53")

    assert list(route.points) == my_position_list, "Route.points should store the input points in order."
    assert len(route) == 3, "len(route) should return the number of points."
    assert route[0] == pos1
    assert route[-1] == pos3
    assert list(route) == my_position_list, "Iterating over the route should yield its points."
    assert route.origin == pos1
    assert route.destination == pos3
    assert route.summary == "NH 53"
    assert route.source == RouteSource.BACKEND
    assert not route.is_fallback
    assert route.steps == ()

    # Single point routes are valid
    single = Route([pos1])
    assert len(single) == 1
    assert single.distance_to(pos1) == pytest.approx(0.0, abs=1e-6)


def test_empty_route_is_rejected():
    with pytest.raises(ValueError):
        Route([])


def test_points_are_immutable():
    points = [GeoPoint(0.0, 0.0), GeoPoint(0.0, 0.01)]
    route = Route(points)
    points.append(GeoPoint(0.0, 0.02))

    assert len(route) == 2
    assert isinstance(route.points, tuple)


def test_average_speed():
    points = [GeoPoint(0.0, 0.0), GeoPoint(0.0, 0.01)]
    assert Route(points, distance=1000.0, duration=100.0).average_speed == 10.0
    assert Route(points, distance=1000.0, duration=0.0).average_speed is None
    assert Route(points, distance=0.0, duration=100.0).average_speed is None


def test_cumulative_distances_are_memoized(north_route):
    first = north_route.cumulative_distances()
    assert first[0] == 0.0
    assert first[-1] == pytest.approx(2000.0, rel=1e-6)
    assert north_route.cumulative_distances() is first


class TestDistanceTo:
    def test_point_on_route(self, north_route, north_path):
        assert north_route.distance_to(north_path[7]) == pytest.approx(0.0, abs=1e-3)

    def test_perpendicular_offset(self, north_route, north_path):
        off = geodesy.destination_point(north_path[7], 80.0, 90.0)
        assert north_route.distance_to(off) == pytest.approx(80.0, rel=1e-3)

    def test_beyond_route_end_measures_to_endpoint(self, north_route, north_path):
        beyond = geodesy.destination_point(north_path[-1], 300.0, 0.0)
        assert north_route.distance_to(beyond) == pytest.approx(300.0, rel=1e-3)

    def test_closest_point_is_on_route(self, north_route, north_path):
        off = geodesy.destination_point(north_path[7], 80.0, 270.0)
        closest = north_route.closest_point(off)
        assert geodesy.distance(closest, north_path[7]) == pytest.approx(0.0, abs=0.5)


class TestProgressQueries:
    def test_remaining_distance_at_start(self, north_route):
        remaining, index = north_route.remaining_distance(ORIGIN)
        assert index == 0
        assert remaining == pytest.approx(2000.0, rel=1e-6)

    def test_remaining_distance_adds_offset_to_nearest_vertex(self, north_route, north_path):
        position = geodesy.destination_point(north_path[15], 30.0, 0.0)
        remaining, index = north_route.remaining_distance(position)
        assert index == 15
        assert remaining == pytest.approx(500.0 + 30.0, rel=1e-4)

    def test_nearest_step(self, north_route, north_path):
        index, distance = north_route.nearest_step(north_path[10])
        assert index == 1
        assert distance == pytest.approx(0.0, abs=1e-3)

    def test_nearest_step_without_steps(self, north_path):
        index, distance = Route(north_path).nearest_step(ORIGIN)
        assert index is None
        assert distance == float("inf")


def test_corridor_is_closed_ring(north_route):
    ring = north_route.corridor(17.0)
    assert ring[0] == ring[-1]
    assert len(ring) == 2 * len(north_route) + 1


def test_repr_mentions_source():
    route = make_route(straight_path(ORIGIN, 45.0, 500.0, 5), step_count=1, source=RouteSource.FALLBACK)
    assert "source=fallback" in repr(route)
