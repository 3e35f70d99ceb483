"""Track file parsing (GPX, TCX and FIT) into Track objects."""

import io
import os
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import gpxpy
import gpxpy.gpx
from fitparse import FitFile
from fitparse.utils import FitParseError

from .clock_aligner import ensure_utc, parse_instant
from .errors import SourceError
from .models import ActivitySummary, GeoPoint, SensorSample, Track, TrackPoint

SEMICIRCLES_TO_DEGREES = 180.0 / 2 ** 31


@dataclass
class TrackFile:
    """A parsed track together with the activity totals found in the file."""

    track: Track
    summary: ActivitySummary = field(default_factory=ActivitySummary)
    format: str = ""

    @property
    def has_sensor_data(self) -> bool:
        return any(p.sensor is not None for p in self.track.points)


def _local_name(tag: str) -> str:
    """Strip the XML namespace from a tag."""
    return tag.rsplit("}", 1)[-1]


def _to_float(text: Optional[str]) -> Optional[float]:
    if text is None:
        return None
    try:
        return float(text.strip())
    except ValueError:
        return None


def _sensor_or_none(heart_rate, cadence, speed) -> Optional[SensorSample]:
    sample = SensorSample(heart_rate=heart_rate, cadence=cadence, instant_speed=speed)
    return None if sample.is_empty() else sample


# --------------------------------------------------------------------------
# GPX
# --------------------------------------------------------------------------

def _gpx_extension_sensor(extensions) -> Optional[SensorSample]:
    """Read hr/cad/speed from Garmin TrackPointExtension blocks."""
    values: Dict[str, float] = {}
    for extension in extensions or []:
        for element in extension.iter():
            name = _local_name(element.tag).lower()
            if name in ("hr", "cad", "speed") and name not in values:
                value = _to_float(element.text)
                if value is not None:
                    values[name] = value
    return _sensor_or_none(values.get("hr"), values.get("cad"), values.get("speed"))


def parse_gpx_content(content: str) -> TrackFile:
    """
    Parse GPX content from a string.

    All track segments are concatenated in file order; each point keeps
    the number of the segment it came from. Unknown extension elements are
    ignored.

    Raises:
        SourceError: If the content is not valid GPX
    """
    try:
        gpx = gpxpy.parse(io.StringIO(content))
    except gpxpy.gpx.GPXException as e:
        raise SourceError(f"Invalid GPX file: {e}") from e

    points: List[TrackPoint] = []
    summary = ActivitySummary()
    name = None
    segment_number = 0
    for gpx_track in gpx.tracks:
        name = name or gpx_track.name
        if gpx_track.type and summary.sport is None:
            summary.sport = gpx_track.type
        for segment in gpx_track.segments:
            if not segment.points:
                continue
            for pt in segment.points:
                sensor = _gpx_extension_sensor(pt.extensions)
                if sensor is not None and sensor.heart_rate is not None:
                    summary.heart_rates.append(sensor.heart_rate)
                points.append(
                    TrackPoint(
                        position=GeoPoint(pt.latitude, pt.longitude),
                        elevation=pt.elevation,
                        timestamp=ensure_utc(pt.time) if pt.time else None,
                        sensor=sensor,
                        segment=segment_number,
                    )
                )
            segment_number += 1

    return TrackFile(track=Track(points=tuple(points), name=name), summary=summary, format="gpx")


# --------------------------------------------------------------------------
# TCX
# --------------------------------------------------------------------------

def _child(element: ET.Element, name: str) -> Optional[ET.Element]:
    for child in element:
        if _local_name(child.tag) == name:
            return child
    return None


def _find_text(element: ET.Element, *path: str) -> Optional[str]:
    current = element
    for name in path:
        current = _child(current, name)
        if current is None:
            return None
    return current.text


def _parse_tcx_trackpoint(element: ET.Element) -> Optional[TrackPoint]:
    lat = _to_float(_find_text(element, "Position", "LatitudeDegrees"))
    lon = _to_float(_find_text(element, "Position", "LongitudeDegrees"))
    if lat is None or lon is None:
        return None

    timestamp = None
    time_text = _find_text(element, "Time")
    if time_text:
        try:
            timestamp = parse_instant(time_text)
        except ValueError:
            timestamp = None

    heart_rate = _to_float(_find_text(element, "HeartRateBpm", "Value"))
    cadence = _to_float(_find_text(element, "Cadence"))
    speed = None
    extensions = _child(element, "Extensions")
    if extensions is not None:
        for ext in extensions.iter():
            name = _local_name(ext.tag)
            if name == "Speed":
                speed = _to_float(ext.text)
            elif name == "RunCadence" and cadence is None:
                cadence = _to_float(ext.text)

    return TrackPoint(
        position=GeoPoint(lat, lon),
        elevation=_to_float(_find_text(element, "AltitudeMeters")),
        timestamp=timestamp,
        sensor=_sensor_or_none(heart_rate, cadence, speed),
    )


def parse_tcx_content(content: str) -> TrackFile:
    """
    Parse TCX content from a string.

    Trackpoints without a position are skipped. Lap totals are summed into
    the ActivitySummary.

    Raises:
        SourceError: If the content is not valid XML
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise SourceError(f"Invalid TCX file: {e}") from e

    summary = ActivitySummary()
    points: List[TrackPoint] = []

    for element in root.iter():
        name = _local_name(element.tag)
        if name == "Activity" and summary.sport is None:
            summary.sport = element.get("Sport")
        elif name == "Lap":
            summary.total_time_seconds += _to_float(_find_text(element, "TotalTimeSeconds")) or 0.0
            summary.total_distance_meters += _to_float(_find_text(element, "DistanceMeters")) or 0.0
            summary.total_calories += _to_float(_find_text(element, "Calories")) or 0.0
        elif name == "Trackpoint":
            point = _parse_tcx_trackpoint(element)
            if point is None:
                continue
            points.append(point)
            if point.sensor is not None and point.sensor.heart_rate is not None:
                summary.heart_rates.append(point.sensor.heart_rate)

    return TrackFile(track=Track(points=tuple(points)), summary=summary, format="tcx")


# --------------------------------------------------------------------------
# FIT
# --------------------------------------------------------------------------

def read_fit(path: str) -> TrackFile:
    """
    Read a FIT activity file.

    Record messages without a position are skipped; coordinates are
    converted from semicircles to degrees.

    Raises:
        SourceError: If the file cannot be decoded
    """
    try:
        fitfile = FitFile(path)
        records = list(fitfile.get_messages("record"))
        sessions = list(fitfile.get_messages("session"))
    except FitParseError as e:
        raise SourceError(f"Invalid FIT file: {e}") from e

    summary = ActivitySummary()
    points: List[TrackPoint] = []
    for record in records:
        values = record.get_values()
        lat_raw = values.get("position_lat")
        lon_raw = values.get("position_long")
        if lat_raw is None or lon_raw is None:
            continue

        elevation = values.get("enhanced_altitude")
        if elevation is None:
            elevation = values.get("altitude")
        speed = values.get("enhanced_speed")
        if speed is None:
            speed = values.get("speed")
        heart_rate = values.get("heart_rate")
        cadence = values.get("cadence")
        timestamp = values.get("timestamp")

        if values.get("distance") is not None:
            summary.total_distance_meters = float(values["distance"])
        if heart_rate is not None:
            summary.heart_rates.append(float(heart_rate))

        points.append(
            TrackPoint(
                position=GeoPoint(lat_raw * SEMICIRCLES_TO_DEGREES, lon_raw * SEMICIRCLES_TO_DEGREES),
                elevation=float(elevation) if elevation is not None else None,
                timestamp=ensure_utc(timestamp) if timestamp is not None else None,
                sensor=_sensor_or_none(
                    float(heart_rate) if heart_rate is not None else None,
                    float(cadence) if cadence is not None else None,
                    float(speed) if speed is not None else None,
                ),
            )
        )

    for session in sessions:
        values = session.get_values()
        if values.get("sport") is not None:
            summary.sport = str(values["sport"])
        if values.get("total_elapsed_time") is not None:
            summary.total_time_seconds = float(values["total_elapsed_time"])
        if values.get("total_calories") is not None:
            summary.total_calories = float(values["total_calories"])

    return TrackFile(track=Track(points=tuple(points)), summary=summary, format="fit")


# --------------------------------------------------------------------------
# Dispatch
# --------------------------------------------------------------------------

def _read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


_TEXT_READERS: Dict[str, Callable[[str], TrackFile]] = {
    ".gpx": parse_gpx_content,
    ".tcx": parse_tcx_content,
}


def read_track(path: str) -> TrackFile:
    """
    Read a track file, choosing the parser from its extension.

    Args:
        path: Path to a .gpx, .tcx or .fit file

    Returns:
        TrackFile with the parsed track and activity summary

    Raises:
        SourceError: If the file is missing, unsupported or unparseable
    """
    extension = os.path.splitext(path)[1].lower()
    try:
        if extension == ".fit":
            return read_fit(path)
        if extension in _TEXT_READERS:
            return _TEXT_READERS[extension](_read_text(path))
    except OSError as e:
        raise SourceError(f"Cannot read track file {path}: {e}") from e

    raise SourceError(f"Unsupported track file format: '{extension or path}'")
