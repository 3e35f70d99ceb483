"""Kinematics derived from consecutive track points.

Every function here returns None when its inputs cannot support a value.
None is never replaced by zero at this level: whether a missing speed is
drawn as 0 km/h is decided by the renderer.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .models import AlignedPoint, FrameMetrics, RenderableFrame, TrackPoint

EARTH_RADIUS_M = 6_371_000.0
STANDARD_GRAVITY = 9.80665
MPS_TO_KMH = 3.6


def _seconds_between(p1: TrackPoint, p2: TrackPoint) -> Optional[float]:
    if p1.timestamp is None or p2.timestamp is None:
        return None
    return (p2.timestamp - p1.timestamp).total_seconds()


def distance_2d(p1: TrackPoint, p2: TrackPoint) -> float:
    """Great-circle (haversine) distance in meters."""
    lat1 = math.radians(p1.latitude)
    lon1 = math.radians(p1.longitude)
    lat2 = math.radians(p2.latitude)
    lon2 = math.radians(p2.longitude)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # Rounding can push a just outside [0, 1] for near-antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def distance_3d(p1: TrackPoint, p2: TrackPoint) -> float:
    """Distance in meters including the elevation change, when both are known."""
    horizontal = distance_2d(p1, p2)
    if p1.elevation is not None and p2.elevation is not None:
        vertical = p2.elevation - p1.elevation
    else:
        vertical = 0.0
    return math.sqrt(horizontal ** 2 + vertical ** 2)


def speed_kmh(p1: TrackPoint, p2: TrackPoint) -> Optional[float]:
    """Average speed between two points in km/h, or None without a positive Δt."""
    dt = _seconds_between(p1, p2)
    if dt is None or dt <= 0:
        return None
    return distance_3d(p1, p2) / dt * MPS_TO_KMH


def bearing_deg(p1: TrackPoint, p2: TrackPoint) -> float:
    """Initial compass bearing from p1 to p2 in [0, 360), 0 = north."""
    lat1 = math.radians(p1.latitude)
    lat2 = math.radians(p2.latitude)
    dlon = math.radians(p2.longitude - p1.longitude)

    y = math.sin(dlon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlon)

    bearing = math.degrees(math.atan2(y, x)) % 360.0
    # Tiny negative angles wrap to 360.0 in floating point
    return 0.0 if bearing >= 360.0 else bearing


def g_force(p1: TrackPoint, p2: TrackPoint, p3: TrackPoint) -> Optional[float]:
    """
    Longitudinal acceleration at p2 as a multiple of standard gravity.

    Only the change in speed along the track is measured; acceleration from
    a change of heading is not included.
    """
    v12 = speed_kmh(p1, p2)
    v23 = speed_kmh(p2, p3)
    if v12 is None or v23 is None:
        return None

    dt = _seconds_between(p2, p3)
    if dt is None or dt <= 0:
        return None

    acceleration = (v23 / MPS_TO_KMH - v12 / MPS_TO_KMH) / dt
    return acceleration / STANDARD_GRAVITY


@dataclass
class CumulativeTotals:
    """Running distance and elevation gain over consecutive points.

    Distance uses the horizontal (2D) leg. Elevation gain only adds climbs;
    descents neither subtract nor reset the total. Nothing is added across
    a segment break.
    """

    distance_m: float = 0.0
    elevation_gain_m: float = 0.0
    _last: Optional[TrackPoint] = field(default=None, repr=False)

    def add(self, point: TrackPoint) -> None:
        if self._last is not None and self._last.segment == point.segment:
            self.distance_m += distance_2d(self._last, point)
            if self._last.elevation is not None and point.elevation is not None:
                climb = point.elevation - self._last.elevation
                if climb > 0:
                    self.elevation_gain_m += climb
        self._last = point


def compute_metrics(
    points: Sequence[TrackPoint],
    index: int,
) -> FrameMetrics:
    """Speed, bearing and g-force at points[index] from its same-segment neighbors."""
    current = points[index]
    previous = points[index - 1] if index > 0 else None
    following = points[index + 1] if index + 1 < len(points) else None
    if previous is not None and previous.segment != current.segment:
        previous = None
    if following is not None and following.segment != current.segment:
        following = None

    speed = None
    bearing = None
    g = None
    if previous is not None:
        speed = speed_kmh(previous, current)
        bearing = bearing_deg(previous, current)
        if following is not None:
            g = g_force(previous, current, following)

    return FrameMetrics(speed_kmh=speed, bearing_deg=bearing, g_force=g)


def build_frames(
    points: Sequence[TrackPoint],
    aligned: Sequence[AlignedPoint],
) -> List[RenderableFrame]:
    """
    Attach kinematics to every aligned point.

    Args:
        points: The full interpolated point sequence (neighbors may lie
                outside the video window)
        aligned: In-window points, indexing into points

    Returns:
        One RenderableFrame per aligned point, in order. Cumulative totals
        start at zero with the first in-window point.
    """
    totals = CumulativeTotals()
    frames = []
    for item in aligned:
        totals.add(item.point)
        metrics = compute_metrics(points, item.index)
        frames.append(
            RenderableFrame(
                video_seconds=item.video_seconds,
                source_point=item.point,
                metrics=FrameMetrics(
                    speed_kmh=metrics.speed_kmh,
                    bearing_deg=metrics.bearing_deg,
                    g_force=metrics.g_force,
                    cumulative_distance_m=totals.distance_m,
                    cumulative_elevation_gain_m=totals.elevation_gain_m,
                ),
            )
        )
    return frames
