import pytest
from hypothesis import given, strategies as st, assume

from navcopilot import geodesy, polyline
from navcopilot.geometry import GeoPoint
from navcopilot.optimizer import composite_score

# Strategy for valid GPS coordinates
valid_lat = st.floats(-80.0, 80.0)
valid_lon = st.floats(-180.0, 180.0)
valid_position = st.builds(GeoPoint, latitude=valid_lat, longitude=valid_lon)
heading = st.floats(-720.0, 720.0)


class TestDistanceProperties:

    @given(valid_position, valid_position)
    def test_distance_is_non_negative(self, pos1, pos2):
        """Distance between any two points is always non-negative."""
        assert geodesy.distance(pos1, pos2) >= 0

    @given(valid_position)
    def test_distance_to_self_is_zero(self, pos):
        """Distance from a point to itself is always zero."""
        assert geodesy.distance(pos, pos) == 0

    @given(valid_position, valid_position)
    def test_distance_is_symmetric(self, pos1, pos2):
        """Distance from A to B equals distance from B to A."""
        assert abs(geodesy.distance(pos1, pos2) - geodesy.distance(pos2, pos1)) < 1e-9

    @given(valid_position, valid_position, valid_position)
    def test_triangle_inequality(self, pos1, pos2, pos3):
        """For any triangle, sum of two sides >= third side (within rounding near antipodes)."""
        d12 = geodesy.distance(pos1, pos2)
        d23 = geodesy.distance(pos2, pos3)
        d13 = geodesy.distance(pos1, pos3)

        assert d12 + d23 >= d13 - 1.0
        assert d12 + d13 >= d23 - 1.0
        assert d23 + d13 >= d12 - 1.0


class TestBearingProperties:

    @given(valid_position, valid_position)
    def test_bearing_range(self, pos1, pos2):
        """Bearing is always in range [0, 360)."""
        bearing = geodesy.bearing(pos1, pos2)
        assert 0 <= bearing < 360

    @given(heading)
    def test_angle_difference_to_self_is_zero(self, angle):
        assert geodesy.angle_difference(angle, angle) == 0

    @given(heading, heading)
    def test_angle_difference_range(self, a, b):
        """Signed difference always lies in (-180, 180]."""
        diff = geodesy.angle_difference(a, b)
        assert -180 < diff <= 180

    @given(heading, heading)
    def test_angle_difference_antisymmetric(self, a, b):
        """Swapping the arguments flips the sign, except at exactly 180 degrees."""
        ab = geodesy.angle_difference(a, b)
        ba = geodesy.angle_difference(b, a)
        assume(abs(abs(ab) - 180) > 1e-6)
        assert ab == pytest.approx(-ba, abs=1e-6)


class TestDestinationPointProperties:

    @given(
        valid_position,
        st.floats(0.0, 359.999),
        st.floats(1000.0, 5_000_000.0),
        st.floats(0.1, 0.9),
    )
    def test_destination_lies_on_geodesic(self, a, initial_bearing, length, fraction):
        """Travelling part of the way along bearing(a, b) lands on the a-b great circle."""
        b = geodesy.destination_point(a, length, initial_bearing)
        total = geodesy.distance(a, b)

        d = total * fraction
        p = geodesy.destination_point(a, d, geodesy.bearing(a, b))

        assert geodesy.distance(a, p) == pytest.approx(d, rel=1e-6, abs=1e-3)
        detour = geodesy.distance(a, p) + geodesy.distance(p, b) - total
        assert abs(detour) < 1e-6 * total + 1e-3

    @given(valid_position, st.floats(1.0, 100_000.0), st.floats(0.0, 359.999))
    def test_destination_distance(self, origin, d, bearing):
        p = geodesy.destination_point(origin, d, bearing)
        assert geodesy.distance(origin, p) == pytest.approx(d, rel=1e-6)


class TestCorridorProperties:

    @given(st.lists(valid_position, min_size=2, max_size=120), st.integers(2, 60))
    def test_downsample_keeps_last_point(self, path, budget):
        sampled = geodesy.downsample_path(path, budget)
        assert sampled[-1] == path[-1]
        assert sampled[0] == path[0]
        assert len(sampled) <= budget + 1

    @given(st.lists(valid_position, min_size=2, max_size=120), st.floats(1.0, 100.0))
    def test_corridor_ring_is_closed(self, path, half_width):
        ring = geodesy.corridor_buffer(path, half_width, 50)
        assert ring[0] == ring[-1]
        assert len(ring) == 2 * len(geodesy.downsample_path(path, 50)) + 1

    @given(st.lists(valid_position, max_size=1), st.floats(1.0, 100.0))
    def test_corridor_of_degenerate_path_is_empty(self, path, half_width):
        assert geodesy.corridor_buffer(path, half_width) == []


class TestPolylineProperties:

    @given(st.lists(valid_position, max_size=50))
    def test_decode_recovers_points_to_precision(self, points):
        decoded = polyline.decode(polyline.encode(points))
        assert len(decoded) == len(points)
        for original, restored in zip(points, decoded):
            assert abs(original.latitude - restored.latitude) <= 0.5e-5 + 1e-9
            assert abs(original.longitude - restored.longitude) <= 0.5e-5 + 1e-9


distance_m = st.floats(0.0, 1_000_000.0)
time_s = st.floats(0.0, 100_000.0)
penalty = st.floats(0.0, 10.0)


class TestScoreProperties:

    @given(distance_m, time_s, penalty, penalty)
    def test_score_non_increasing_in_penalty(self, d, t, p1, p2):
        low, high = sorted((p1, p2))
        assert composite_score(d, t, low) >= composite_score(d, t, high)

    @given(distance_m, distance_m, time_s, penalty)
    def test_score_non_increasing_in_distance(self, d1, d2, t, p):
        short, long = sorted((d1, d2))
        assert composite_score(short, t, p) >= composite_score(long, t, p)

    @given(distance_m, time_s, time_s, penalty)
    def test_score_non_increasing_in_time(self, d, t1, t2, p):
        fast, slow = sorted((t1, t2))
        assert composite_score(d, fast, p) >= composite_score(d, slow, p)
