"""Tests for GPX/TCX/FIT track reading."""

from datetime import datetime, timezone

import pytest

from trackoverlay import track_reader
from trackoverlay.errors import SourceError
from trackoverlay.interpolator import interpolate_points
from trackoverlay.track_reader import (
    SEMICIRCLES_TO_DEGREES,
    parse_gpx_content,
    parse_tcx_content,
    read_fit,
    read_track,
)

PAUSED_GPX = """<gpx version="1.1" creator="test" xmlns="http://www.topografix.com/GPX/1/1">
  <trk>
    <trkseg>
      <trkpt lat="45.0000" lon="7.0000"><time>2024-05-01T09:30:00Z</time></trkpt>
      <trkpt lat="45.0001" lon="7.0001"><time>2024-05-01T09:30:01Z</time></trkpt>
    </trkseg>
    <trkseg>
      <trkpt lat="45.0100" lon="7.0100"><time>2024-05-01T09:40:01Z</time></trkpt>
      <trkpt lat="45.0101" lon="7.0101"><time>2024-05-01T09:40:02Z</time></trkpt>
    </trkseg>
    <trkseg/>
  </trk>
  <trk>
    <trkseg>
      <trkpt lat="45.0200" lon="7.0200"><time>2024-05-01T09:50:00Z</time></trkpt>
    </trkseg>
  </trk>
</gpx>
"""


class FakeMessage:
    def __init__(self, **values):
        self.values = values

    def get_values(self):
        return dict(self.values)


class FakeFitFile:
    """Stands in for fitparse.FitFile with canned record and session messages."""

    records = []
    sessions = []

    def __init__(self, path):
        self.path = path

    def get_messages(self, name):
        return {"record": self.records, "session": self.sessions}.get(name, [])


class TestParseGpx:
    def test_single_segment(self, gpx_content):
        track_file = parse_gpx_content(gpx_content)

        assert len(track_file.track) == 3
        assert {p.segment for p in track_file.track.points} == {0}
        assert track_file.track.name == "Morning ride"
        assert track_file.format == "gpx"

    def test_points(self, gpx_content):
        points = parse_gpx_content(gpx_content).track.points

        assert points[0].latitude == pytest.approx(45.0)
        assert points[2].longitude == pytest.approx(7.0002)
        assert points[1].elevation == pytest.approx(101.0)
        assert points[1].timestamp == datetime(2024, 5, 1, 9, 30, 5, tzinfo=timezone.utc)

    def test_garmin_extensions(self, gpx_content):
        track_file = parse_gpx_content(gpx_content)
        first = track_file.track.points[0]

        assert first.sensor.heart_rate == 130.0
        assert first.sensor.cadence == 85.0
        assert first.sensor.instant_speed is None
        assert track_file.track.points[1].sensor is None
        assert track_file.has_sensor_data
        assert track_file.summary.heart_rates == [130.0]

    def test_segments_numbered_in_file_order(self):
        track_file = parse_gpx_content(PAUSED_GPX)
        points = track_file.track.points

        assert [p.segment for p in points] == [0, 0, 1, 1, 2]
        assert [len(run) for run in track_file.track.segments()] == [2, 2, 1]

    def test_pause_between_segments_not_interpolated(self):
        """Two segments ten minutes apart keep the pause empty."""
        points = parse_gpx_content(PAUSED_GPX).track.points[:4]

        assert len(interpolate_points(points, 1)) == 4

    def test_invalid_gpx(self):
        with pytest.raises(SourceError):
            parse_gpx_content("<gpx><trk><trkseg><trkpt lat='x'")


class TestParseTcx:
    def test_points_without_position_skipped(self, tcx_content):
        track_file = parse_tcx_content(tcx_content)

        assert len(track_file.track) == 2
        assert track_file.format == "tcx"

    def test_sensor_values(self, tcx_content):
        first, second = parse_tcx_content(tcx_content).track.points

        assert first.sensor.heart_rate == 140.0
        assert first.sensor.cadence == 90.0
        assert first.sensor.instant_speed == pytest.approx(3.5)
        assert second.sensor is None
        assert second.elevation == pytest.approx(102.0)

    def test_summary_sums_laps(self, tcx_content):
        summary = parse_tcx_content(tcx_content).summary

        assert summary.sport == "Biking"
        assert summary.total_time_seconds == pytest.approx(15.0)
        assert summary.total_distance_meters == pytest.approx(40.0)
        assert summary.total_calories == pytest.approx(3.0)
        assert summary.average_heart_rate() == pytest.approx(140.0)

    def test_invalid_xml(self):
        with pytest.raises(SourceError, match="Invalid TCX"):
            parse_tcx_content("<TrainingCenterDatabase>")


class TestReadTrack:
    def test_dispatch_gpx(self, gpx_file):
        assert read_track(gpx_file).format == "gpx"

    def test_dispatch_tcx(self, tcx_file):
        assert read_track(tcx_file).format == "tcx"

    def test_extension_is_case_insensitive(self, tmp_path, gpx_content):
        path = tmp_path / "RIDE.GPX"
        path.write_text(gpx_content, encoding="utf-8")

        assert len(read_track(str(path)).track) == 3

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "ride.kml"
        path.write_text("<kml/>")

        with pytest.raises(SourceError, match="Unsupported"):
            read_track(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceError, match="Cannot read"):
            read_track(str(tmp_path / "missing.gpx"))

    def test_invalid_fit(self, tmp_path):
        path = tmp_path / "broken.fit"
        path.write_bytes(b"not a fit file at all")

        with pytest.raises(SourceError):
            read_track(str(path))


class TestReadFit:
    @pytest.fixture
    def fake_fit(self, monkeypatch):
        start = datetime(2024, 5, 1, 9, 30, 0)
        FakeFitFile.records = [
            FakeMessage(
                timestamp=start,
                position_lat=536870912,
                position_long=-1073741824,
                enhanced_altitude=250.5,
                altitude=999.0,
                enhanced_speed=5.0,
                speed=1.0,
                heart_rate=120,
                cadence=80,
                distance=0.0,
            ),
            FakeMessage(timestamp=start, heart_rate=121),
            FakeMessage(
                timestamp=start.replace(second=1),
                position_lat=536870912,
                position_long=-1073741823,
                altitude=251.0,
                speed=4.0,
                heart_rate=140,
                distance=4.5,
            ),
        ]
        FakeFitFile.sessions = [
            FakeMessage(sport="cycling", total_elapsed_time=3600.0, total_calories=512),
        ]
        monkeypatch.setattr(track_reader, "FitFile", FakeFitFile)

    def test_semicircles_to_degrees(self, fake_fit):
        points = read_fit("ride.fit").track.points

        assert len(points) == 2
        assert points[0].latitude == pytest.approx(45.0)
        assert points[0].longitude == pytest.approx(-90.0)
        assert points[1].longitude == pytest.approx(-1073741823 * SEMICIRCLES_TO_DEGREES)

    def test_enhanced_fields_preferred(self, fake_fit):
        first, second = read_fit("ride.fit").track.points

        assert first.elevation == pytest.approx(250.5)
        assert first.sensor.instant_speed == pytest.approx(5.0)
        assert second.elevation == pytest.approx(251.0)
        assert second.sensor.instant_speed == pytest.approx(4.0)

    def test_sensor_and_timestamp(self, fake_fit):
        first, second = read_fit("ride.fit").track.points

        assert first.sensor.heart_rate == 120.0
        assert first.sensor.cadence == 80.0
        assert second.sensor.cadence is None
        assert first.timestamp == datetime(2024, 5, 1, 9, 30, 0, tzinfo=timezone.utc)

    def test_session_summary(self, fake_fit):
        track_file = read_fit("ride.fit")
        summary = track_file.summary

        assert track_file.format == "fit"
        assert summary.sport == "cycling"
        assert summary.total_time_seconds == pytest.approx(3600.0)
        assert summary.total_calories == pytest.approx(512.0)
        assert summary.total_distance_meters == pytest.approx(4.5)
        assert summary.average_heart_rate() == pytest.approx(130.0)

    def test_dispatch_fit(self, fake_fit, tmp_path):
        assert read_track(str(tmp_path / "ride.FIT")).format == "fit"
