"""Scheduling of overlay channels onto the video timeline.

Each enabled channel becomes a ChannelSchedule: an ordered list of
CompositionOp values. Per-frame channels (speedometer, stats) get one op per
frame whose window runs until the next frame. The track map gets a single
static base op plus one marker op per frame.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .config import (
    DEFAULT_TRAILING_SECONDS,
    MARKER_RADIUS,
    TRACK_MAP_PADDING,
    TRACK_MAP_SIZE,
)
from .models import (
    CHANNEL_ORDER,
    ChannelKind,
    CompositionOp,
    OverlayChannel,
    RenderableFrame,
    TrackPoint,
)
from .projection import ProjectionMapper

TRACK_MAP_BASE_ASSET = "track_map/base.png"
TRACK_MAP_MARKER_ASSET = "track_map/marker.png"


def frame_asset_name(kind: ChannelKind, index: int) -> str:
    """Asset name for a per-frame raster of the given channel."""
    return f"{kind.value}/frame_{index:05d}.png"


@dataclass
class ChannelSchedule:
    """The ops scheduled for one channel, in chain order."""

    channel: OverlayChannel
    operations: List[CompositionOp]


def frame_windows(
    frames: Sequence[RenderableFrame],
    trailing_seconds: float,
    video_duration: Optional[float] = None,
) -> List[tuple]:
    """
    Compute contiguous (start, end) windows, one per frame.

    Each window ends where the next frame starts. The last window lasts
    trailing_seconds, clipped to the video duration when one is given.
    """
    windows = []
    for i, frame in enumerate(frames):
        start = frame.video_seconds
        if i + 1 < len(frames):
            end = frames[i + 1].video_seconds
        else:
            end = start + trailing_seconds
            if video_duration is not None:
                end = max(start, min(end, video_duration))
        windows.append((start, end))
    return windows


class OverlayScheduler:
    """Turns frames and channel selections into per-channel schedules."""

    def __init__(
        self,
        trailing_seconds: float = DEFAULT_TRAILING_SECONDS,
        video_duration: Optional[float] = None,
        map_size: tuple = TRACK_MAP_SIZE,
        map_padding: float = TRACK_MAP_PADDING,
        marker_radius: int = MARKER_RADIUS,
    ) -> None:
        self.trailing_seconds = trailing_seconds
        self.video_duration = video_duration
        self.map_size = map_size
        self.map_padding = map_padding
        self.marker_radius = marker_radius
        self._builders: Dict[ChannelKind, Callable] = {
            ChannelKind.SPEEDOMETER: self._schedule_per_frame,
            ChannelKind.STATS: self._schedule_per_frame,
            ChannelKind.TRACK_MAP: self._schedule_track_map,
        }

    def projection_for(self, map_points: Iterable[TrackPoint]) -> ProjectionMapper:
        """The mapper shared by the static map render and marker placement."""
        width, height = self.map_size
        return ProjectionMapper.from_points(map_points, width, height, self.map_padding)

    def schedule(
        self,
        frames: Sequence[RenderableFrame],
        channels: Iterable[OverlayChannel],
        map_projection: Optional[ProjectionMapper] = None,
    ) -> List[ChannelSchedule]:
        """
        Schedule every enabled channel.

        Args:
            frames: Aligned, interpolated, kinematics-annotated frames
            channels: Channel selections in any order
            map_projection: Mapper for the track map; built from the frame
                            points when omitted

        Returns:
            Schedules in stacking order (speedometer, track map, stats).
            Disabled channels, and every channel when there are no frames,
            are left out.
        """
        enabled = {c.kind: c for c in channels if c.enabled}
        if not frames or not enabled:
            return []

        schedules = []
        for kind in CHANNEL_ORDER:
            channel = enabled.get(kind)
            if channel is None:
                continue
            operations = self._builders[kind](channel, frames, map_projection)
            schedules.append(ChannelSchedule(channel=channel, operations=operations))
        return schedules

    def _schedule_per_frame(
        self,
        channel: OverlayChannel,
        frames: Sequence[RenderableFrame],
        map_projection: Optional[ProjectionMapper],
    ) -> List[CompositionOp]:
        windows = frame_windows(frames, self.trailing_seconds, self.video_duration)
        return [
            CompositionOp(
                channel=channel.kind,
                asset=frame_asset_name(channel.kind, i),
                anchor=channel.anchor,
                window_start=start,
                window_end=end,
                frame_index=i,
            )
            for i, (start, end) in enumerate(windows)
        ]

    def _schedule_track_map(
        self,
        channel: OverlayChannel,
        frames: Sequence[RenderableFrame],
        map_projection: Optional[ProjectionMapper],
    ) -> List[CompositionOp]:
        if map_projection is None:
            map_projection = self.projection_for(f.source_point for f in frames)

        operations = [
            CompositionOp(
                channel=channel.kind,
                asset=TRACK_MAP_BASE_ASSET,
                anchor=channel.anchor,
            )
        ]

        windows = frame_windows(frames, self.trailing_seconds, self.video_duration)
        for i, (frame, (start, end)) in enumerate(zip(frames, windows)):
            x, y = map_projection.project(frame.source_point)
            operations.append(
                CompositionOp(
                    channel=channel.kind,
                    asset=TRACK_MAP_MARKER_ASSET,
                    anchor=channel.anchor,
                    window_start=start,
                    window_end=end,
                    frame_index=i,
                    # Center the dot on the projected pixel
                    offset=(x - self.marker_radius, y - self.marker_radius),
                    box_size=tuple(self.map_size),
                )
            )
        return operations
