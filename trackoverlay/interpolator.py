"""Track densification by linear interpolation."""

import math
from datetime import timedelta
from typing import List, Optional, Sequence

from .errors import ConfigError
from .models import GeoPoint, Track, TrackPoint

ONE_MICROSECOND = timedelta(microseconds=1)


def _lerp(a: float, b: float, ratio: float) -> float:
    return a + (b - a) * ratio


def bound_microseconds(max_interval_seconds: float) -> int:
    """
    The interpolation bound in whole microseconds, floored.

    Raises:
        ConfigError: If the bound is missing, not finite or under 1 µs
    """
    if max_interval_seconds is None or not math.isfinite(max_interval_seconds):
        raise ConfigError(
            f"Interpolation interval must be a finite number, got {max_interval_seconds}"
        )
    bound_us = math.floor(max_interval_seconds * 1_000_000)
    if bound_us < 1:
        raise ConfigError(
            f"Interpolation interval must be positive, got {max_interval_seconds}"
        )
    return bound_us


def interpolate_pair(
    p1: TrackPoint,
    p2: TrackPoint,
    max_interval_seconds: float,
) -> List[TrackPoint]:
    """
    Build the synthetic points needed between two consecutive points.

    For a gap of g microseconds with g > b, where b is the bound floored to
    whole microseconds, the pair is split into n = ceil(g / b) intervals
    and n - 1 points are returned. Sensor samples are never interpolated
    and points from different segments are never joined.

    Args:
        p1: Earlier point
        p2: Later point
        max_interval_seconds: Largest allowed gap between timestamps

    Returns:
        Synthetic points in time order (empty if no insertion is needed)
    """
    bound_us = bound_microseconds(max_interval_seconds)
    if p1.timestamp is None or p2.timestamp is None or p1.segment != p2.segment:
        return []

    gap_us = (p2.timestamp - p1.timestamp) // ONE_MICROSECOND
    if gap_us <= bound_us:
        return []

    intervals = -(-gap_us // bound_us)
    elevation_known = p1.elevation is not None and p2.elevation is not None

    synthetic = []
    for i in range(1, intervals):
        ratio = i / intervals
        elevation: Optional[float] = None
        if elevation_known:
            elevation = _lerp(p1.elevation, p2.elevation, ratio)

        synthetic.append(
            TrackPoint(
                position=GeoPoint(
                    latitude=_lerp(p1.latitude, p2.latitude, ratio),
                    longitude=_lerp(p1.longitude, p2.longitude, ratio),
                ),
                elevation=elevation,
                timestamp=p1.timestamp + timedelta(microseconds=gap_us * i // intervals),
                sensor=None,
                synthetic=True,
                segment=p1.segment,
            )
        )
    return synthetic


def interpolate_points(
    points: Sequence[TrackPoint],
    max_interval_seconds: float,
) -> List[TrackPoint]:
    """
    Insert synthetic points so no timestamped gap within a segment exceeds
    the bound.

    Original points are all kept, in their original order. Pairs where either
    side lacks a timestamp, and pairs straddling a segment break, pass
    through unchanged.

    Raises:
        ConfigError: If max_interval_seconds is not a positive finite number
    """
    bound_microseconds(max_interval_seconds)

    if not points:
        return []

    result = [points[0]]
    for i in range(1, len(points)):
        result.extend(interpolate_pair(points[i - 1], points[i], max_interval_seconds))
        result.append(points[i])
    return result


def interpolate_track(track: Track, max_interval_seconds: float) -> Track:
    """Return a new Track densified with interpolate_points."""
    return Track(
        points=tuple(interpolate_points(track.points, max_interval_seconds)),
        name=track.name,
    )
