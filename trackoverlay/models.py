"""Data models for trackoverlay."""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional, Tuple

from .errors import ConfigError


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 position in degrees."""

    latitude: float
    longitude: float

    def is_valid(self) -> bool:
        """True if both coordinates are finite and inside their ranges."""
        return (
            math.isfinite(self.latitude)
            and math.isfinite(self.longitude)
            and -90.0 <= self.latitude <= 90.0
            and -180.0 <= self.longitude <= 180.0
        )


@dataclass(frozen=True)
class SensorSample:
    """Telemetry recorded alongside a track point."""

    heart_rate: Optional[float] = None  # beats per minute
    cadence: Optional[float] = None  # rpm or steps per minute
    instant_speed: Optional[float] = None  # m/s as reported by the device

    def is_empty(self) -> bool:
        return (
            self.heart_rate is None
            and self.cadence is None
            and self.instant_speed is None
        )


@dataclass(frozen=True)
class TrackPoint:
    """A single geodetic telemetry sample."""

    position: GeoPoint
    elevation: Optional[float] = None  # meters
    timestamp: Optional[datetime] = None  # timezone-aware UTC
    sensor: Optional[SensorSample] = None
    synthetic: bool = False  # True for points inserted by the interpolator
    segment: int = 0  # recording segment; no value is derived across segments

    @property
    def latitude(self) -> float:
        return self.position.latitude

    @property
    def longitude(self) -> float:
        return self.position.longitude


@dataclass(frozen=True)
class Track:
    """An ordered, immutable sequence of track points."""

    points: Tuple[TrackPoint, ...]
    name: Optional[str] = None

    def __len__(self) -> int:
        return len(self.points)

    def timestamped_points(self) -> List[TrackPoint]:
        """Points that carry a timestamp, in track order."""
        return [p for p in self.points if p.timestamp is not None]

    def segments(self) -> List[List[TrackPoint]]:
        """Runs of consecutive points sharing a segment number."""
        runs: List[List[TrackPoint]] = []
        for point in self.points:
            if runs and runs[-1][-1].segment == point.segment:
                runs[-1].append(point)
            else:
                runs.append([point])
        return runs


@dataclass
class ActivitySummary:
    """Activity-level totals reported by the track file, when present."""

    sport: Optional[str] = None
    total_time_seconds: float = 0.0
    total_distance_meters: float = 0.0
    total_calories: float = 0.0
    heart_rates: List[float] = field(default_factory=list)

    def average_heart_rate(self) -> Optional[float]:
        if not self.heart_rates:
            return None
        return sum(self.heart_rates) / len(self.heart_rates)

    def average_speed(self) -> Optional[float]:
        """Average speed in m/s over the whole activity."""
        if self.total_time_seconds > 0:
            return self.total_distance_meters / self.total_time_seconds
        return None


@dataclass(frozen=True)
class VideoWindow:
    """Wall-clock span covered by a video."""

    start: datetime
    end: datetime

    @classmethod
    def from_duration(cls, start: datetime, duration_seconds: float) -> "VideoWindow":
        return cls(start=start, end=start + timedelta(seconds=duration_seconds))

    @property
    def duration(self) -> float:
        return (self.end - self.start).total_seconds()


@dataclass(frozen=True)
class SyncAnchor:
    """A track instant declared coincident with the start of the video."""

    track_timestamp: datetime

    def offset(self, window: VideoWindow) -> timedelta:
        """Signed offset between the track clock and the video clock."""
        return self.track_timestamp - window.start


@dataclass(frozen=True)
class AlignedPoint:
    """A track point that falls inside the video window."""

    index: int  # Position in the (interpolated) point sequence
    point: TrackPoint
    video_seconds: float


@dataclass(frozen=True)
class FrameMetrics:
    """Kinematics derived for one frame. None means "no value"."""

    speed_kmh: Optional[float] = None
    bearing_deg: Optional[float] = None
    g_force: Optional[float] = None
    cumulative_distance_m: Optional[float] = None
    cumulative_elevation_gain_m: Optional[float] = None


@dataclass(frozen=True)
class RenderableFrame:
    """A track point placed on the video timeline with its metrics."""

    video_seconds: float
    source_point: TrackPoint
    metrics: FrameMetrics = field(default_factory=FrameMetrics)


class Anchor(Enum):
    """Canvas corner an overlay is pinned to."""

    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"

    @classmethod
    def parse(cls, token: str) -> "Anchor":
        try:
            return cls(token.strip().lower())
        except ValueError:
            valid = ", ".join(a.value for a in cls)
            raise ConfigError(
                f"Unknown anchor position '{token}' (expected one of: {valid})"
            ) from None


class ChannelKind(Enum):
    """Overlay layers that can be drawn onto the video."""

    SPEEDOMETER = "speedometer"
    TRACK_MAP = "track_map"
    STATS = "stats"


# Stacking order used when several channels are enabled (bottom to top).
CHANNEL_ORDER = (ChannelKind.SPEEDOMETER, ChannelKind.TRACK_MAP, ChannelKind.STATS)


@dataclass(frozen=True)
class OverlayChannel:
    """A user selection for one overlay layer."""

    kind: ChannelKind
    enabled: bool = True
    anchor: Anchor = Anchor.BOTTOM_LEFT


@dataclass(frozen=True)
class CompositionOp:
    """Overlay one asset onto the current layer.

    A window_start of None means the asset is visible for the whole video.
    offset is added to the anchored position of a box of box_size pixels
    (the asset's own size when box_size is None).
    """

    channel: ChannelKind
    asset: str  # Asset name relative to the job's asset directory
    anchor: Anchor
    window_start: Optional[float] = None
    window_end: Optional[float] = None
    frame_index: Optional[int] = None
    offset: Tuple[float, float] = (0.0, 0.0)
    box_size: Optional[Tuple[int, int]] = None

    @property
    def is_static(self) -> bool:
        return self.window_start is None


@dataclass(frozen=True)
class CompositionPlan:
    """An ordered chain of composition operations for one video."""

    operations: Tuple[CompositionOp, ...]
    video_duration: float

    @property
    def is_empty(self) -> bool:
        return not self.operations

    def for_channel(self, kind: ChannelKind) -> List[CompositionOp]:
        return [op for op in self.operations if op.channel == kind]
