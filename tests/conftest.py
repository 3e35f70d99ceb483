"""Pytest fixtures for trackoverlay tests."""

from datetime import datetime, timedelta, timezone

import pytest
import numpy as np
from moviepy import VideoClip, ColorClip

from trackoverlay.models import GeoPoint, SensorSample, Track, TrackPoint, VideoWindow

T0 = datetime(2024, 5, 1, 9, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def t0():
    """Reference instant used by the point factories."""
    return T0


@pytest.fixture
def make_point():
    """Create a TrackPoint at an offset in seconds from T0."""

    def _create(seconds=0.0, lat=0.0, lon=0.0, elevation=None, sensor=None, timed=True, segment=0):
        return TrackPoint(
            position=GeoPoint(latitude=lat, longitude=lon),
            elevation=elevation,
            timestamp=T0 + timedelta(seconds=seconds) if timed else None,
            sensor=sensor,
            segment=segment,
        )

    return _create


@pytest.fixture
def straight_track(make_point):
    """Eleven points heading east, one per second, climbing 1 m each."""
    return Track(
        points=tuple(
            make_point(
                seconds=i,
                lat=45.0,
                lon=7.0 + i * 0.0001,
                elevation=100.0 + i,
                sensor=SensorSample(heart_rate=120.0 + i, cadence=80.0) if i % 2 == 0 else None,
            )
            for i in range(11)
        ),
        name="Straight",
    )


@pytest.fixture
def video_window():
    """A 60 second video starting at T0."""
    return VideoWindow.from_duration(T0, 60.0)


@pytest.fixture
def synthetic_clip():
    """Create a synthetic video clip for testing."""

    def _create(duration=5.0, size=(320, 240), fps=24):
        def make_frame(t):
            # Create frame with time-based color gradient
            frame = np.zeros((size[1], size[0], 3), dtype=np.uint8)
            # Red channel increases with time
            frame[:, :, 0] = int((t / duration) * 255) if duration > 0 else 0
            return frame

        return VideoClip(make_frame, duration=duration).with_fps(fps)

    return _create


@pytest.fixture
def color_clip():
    """Create a solid color clip."""

    def _create(duration=5.0, size=(320, 240), color=(0, 0, 0)):
        return ColorClip(size=size, color=color, duration=duration).with_fps(24)

    return _create


@pytest.fixture
def ffmpeg_infos():
    """Build a dict shaped like moviepy's ffmpeg_parse_infos output."""

    def _create(creation_time="2024-05-01T09:30:00.000000Z", duration=60.0, in_stream=False):
        stream_metadata = {"creation_time": creation_time} if in_stream and creation_time else {}
        container = {"creation_time": creation_time} if not in_stream and creation_time else {}
        return {
            "duration": duration,
            "metadata": container,
            "inputs": [
                {
                    "streams": [
                        {"stream_type": "audio", "metadata": {}},
                        {"stream_type": "video", "metadata": stream_metadata},
                    ]
                }
            ],
        }

    return _create


SAMPLE_GPX = """<gpx version="1.1" creator="test"
     xmlns="http://www.topografix.com/GPX/1/1"
     xmlns:gpxtpx="http://www.garmin.com/xmlschemas/TrackPointExtension/v1">
  <trk>
    <name>Morning ride</name>
    <trkseg>
      <trkpt lat="45.0000" lon="7.0000">
        <ele>100.0</ele>
        <time>2024-05-01T09:30:00Z</time>
        <extensions>
          <gpxtpx:TrackPointExtension>
            <gpxtpx:hr>130</gpxtpx:hr>
            <gpxtpx:cad>85</gpxtpx:cad>
          </gpxtpx:TrackPointExtension>
        </extensions>
      </trkpt>
      <trkpt lat="45.0001" lon="7.0001">
        <ele>101.0</ele>
        <time>2024-05-01T09:30:05Z</time>
      </trkpt>
      <trkpt lat="45.0002" lon="7.0002">
        <ele>103.0</ele>
        <time>2024-05-01T09:30:10Z</time>
      </trkpt>
    </trkseg>
  </trk>
</gpx>
"""

SAMPLE_TCX = """<?xml version="1.0" encoding="UTF-8"?>
<TrainingCenterDatabase xmlns="http://www.garmin.com/xmlschemas/TrainingCenterDatabase/v2"
    xmlns:ns3="http://www.garmin.com/xmlschemas/ActivityExtension/v2">
  <Activities>
    <Activity Sport="Biking">
      <Id>2024-05-01T09:30:00Z</Id>
      <Lap StartTime="2024-05-01T09:30:00Z">
        <TotalTimeSeconds>10.0</TotalTimeSeconds>
        <DistanceMeters>30.0</DistanceMeters>
        <MaximumSpeed>4.5</MaximumSpeed>
        <Calories>2</Calories>
        <Track>
          <Trackpoint>
            <Time>2024-05-01T09:30:00Z</Time>
            <Position>
              <LatitudeDegrees>45.0</LatitudeDegrees>
              <LongitudeDegrees>7.0</LongitudeDegrees>
            </Position>
            <AltitudeMeters>100.0</AltitudeMeters>
            <HeartRateBpm><Value>140</Value></HeartRateBpm>
            <Cadence>90</Cadence>
            <Extensions>
              <ns3:TPX><ns3:Speed>3.5</ns3:Speed></ns3:TPX>
            </Extensions>
          </Trackpoint>
          <Trackpoint>
            <Time>2024-05-01T09:30:10Z</Time>
            <Position>
              <LatitudeDegrees>45.0002</LatitudeDegrees>
              <LongitudeDegrees>7.0002</LongitudeDegrees>
            </Position>
            <AltitudeMeters>102.0</AltitudeMeters>
          </Trackpoint>
          <Trackpoint>
            <Time>2024-05-01T09:30:12Z</Time>
          </Trackpoint>
        </Track>
      </Lap>
      <Lap StartTime="2024-05-01T09:30:10Z">
        <TotalTimeSeconds>5.0</TotalTimeSeconds>
        <DistanceMeters>10.0</DistanceMeters>
        <MaximumSpeed>3.0</MaximumSpeed>
        <Calories>1</Calories>
      </Lap>
    </Activity>
  </Activities>
</TrainingCenterDatabase>
"""


@pytest.fixture
def gpx_file(tmp_path):
    path = tmp_path / "ride.gpx"
    path.write_text(SAMPLE_GPX, encoding="utf-8")
    return str(path)


@pytest.fixture
def tcx_file(tmp_path):
    path = tmp_path / "ride.tcx"
    path.write_text(SAMPLE_TCX, encoding="utf-8")
    return str(path)


@pytest.fixture
def gpx_content():
    return SAMPLE_GPX


@pytest.fixture
def tcx_content():
    return SAMPLE_TCX
