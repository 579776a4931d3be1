import io
import os

import gpxpy
import gpxpy.gpx
import pytest

from navcopilot.file_utils import MAX_ATTEMPTS, generate_output_filename
from navcopilot.geometry import GeoPoint
from navcopilot.track import load_track, parse_track


def make_gpx(segments):
    gpx_data = gpxpy.gpx.GPX()
    track = gpxpy.gpx.GPXTrack()
    gpx_data.tracks.append(track)
    for points in segments:
        segment = gpxpy.gpx.GPXTrackSegment()
        track.segments.append(segment)
        for lat, lng in points:
            segment.points.append(gpxpy.gpx.GPXTrackPoint(lat, lng))
    return gpx_data.to_xml()


def test_segments_are_concatenated():
    xml = make_gpx([[(21.19, 81.28), (21.191, 81.28)], [(21.192, 81.28)]])

    points = parse_track(io.StringIO(xml))

    assert [p.position for p in points] == [
        GeoPoint(21.19, 81.28),
        GeoPoint(21.191, 81.28),
        GeoPoint(21.192, 81.28),
    ]


def test_empty_track_is_rejected():
    with pytest.raises(ValueError):
        parse_track(io.StringIO(make_gpx([])))


def test_malformed_gpx():
    with pytest.raises(gpxpy.gpx.GPXException):
        parse_track(io.StringIO("<gpx><trk><trkseg>"))


def test_load_track(tmp_path):
    path = tmp_path / "drive.gpx"
    path.write_text(make_gpx([[(21.19, 81.28), (21.2, 81.3)]]), encoding="utf-8")

    assert len(load_track(str(path))) == 2


def test_load_missing_track(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_track(str(tmp_path / "missing.gpx"))


class TestGenerateOutputFilename:
    def test_gpx_extension_is_replaced(self, tmp_path):
        name = generate_output_filename(str(tmp_path / "commute.gpx"))
        assert name == str(tmp_path / "commute navigation.geojson")
        assert os.path.exists(name)

    def test_taken_names_get_numbered(self, tmp_path):
        first = generate_output_filename(str(tmp_path / "commute.GPX"))
        second = generate_output_filename(str(tmp_path / "commute.GPX"))

        assert first == str(tmp_path / "commute navigation.geojson")
        assert second == str(tmp_path / "commute navigation (1).geojson")

    def test_other_extensions_are_kept(self, tmp_path):
        name = generate_output_filename(str(tmp_path / "track.txt"))
        assert name.endswith("track.txt navigation.geojson")

    def test_gives_up_after_max_attempts(self, tmp_path):
        (tmp_path / "a navigation.geojson").touch()
        for i in range(1, MAX_ATTEMPTS + 1):
            (tmp_path / f"a navigation ({i}).geojson").touch()

        with pytest.raises(RuntimeError):
            generate_output_filename(str(tmp_path / "a.gpx"))

    def test_unwritable_directory(self, tmp_path):
        with pytest.raises(ValueError):
            generate_output_filename(str(tmp_path / "no-such-dir" / "a.gpx"))
