"""Clock alignment between a track and a video.

The track and the camera keep independent clocks. The user picks one track
instant that coincides with the first frame of the video; the difference
between that instant and the video's start is applied as a constant offset
to every track timestamp.
"""

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from .errors import AlignmentError
from .models import AlignedPoint, SyncAnchor, Track, TrackPoint, VideoWindow


def ensure_utc(value: datetime) -> datetime:
    """Return value as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_instant(text: str) -> datetime:
    """
    Parse an ISO-8601 instant into an aware UTC datetime.

    Accepts a trailing 'Z' as UTC and treats values without an offset as UTC.

    Raises:
        ValueError: If the text is not a valid timestamp
    """
    cleaned = str(text).strip()
    if cleaned.endswith(("Z", "z")):
        cleaned = cleaned[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(cleaned))


def parse_anchor(text: str) -> SyncAnchor:
    """
    Parse the user's sync timestamp into a SyncAnchor.

    Raises:
        AlignmentError: If the text is empty or not a valid timestamp
    """
    if text is None or not str(text).strip():
        raise AlignmentError("Sync timestamp is empty")

    try:
        return SyncAnchor(track_timestamp=parse_instant(text))
    except ValueError:
        raise AlignmentError(f"Cannot parse sync timestamp '{text}'") from None


class ClockAligner:
    """Maps track timestamps onto the video's timeline."""

    def __init__(self, window: VideoWindow, anchor: SyncAnchor) -> None:
        self.window = window
        self.anchor = anchor
        self.offset = anchor.offset(window)

    @property
    def offset_seconds(self) -> float:
        return self.offset.total_seconds()

    def video_seconds(self, timestamp: datetime) -> float:
        """Seconds from the start of the video for a track timestamp."""
        adjusted = ensure_utc(timestamp) - self.offset
        return (adjusted - self.window.start).total_seconds()

    def in_window(self, timestamp: datetime) -> bool:
        adjusted = ensure_utc(timestamp) - self.offset
        return self.window.start <= adjusted <= self.window.end

    def align(self, points: Sequence[TrackPoint]) -> List[AlignedPoint]:
        """
        Select the points that fall inside the video window.

        Args:
            points: Time-ordered track points (may include untimed points)

        Returns:
            AlignedPoint list in input order. Empty when no point falls in
            the window; callers treat that as "nothing to overlay".

        Raises:
            AlignmentError: If no point carries a timestamp
        """
        if not any(p.timestamp is not None for p in points):
            raise AlignmentError("Track has no timestamped points")

        aligned = []
        for index, point in enumerate(points):
            if point.timestamp is None:
                continue
            if self.in_window(point.timestamp):
                aligned.append(
                    AlignedPoint(
                        index=index,
                        point=point,
                        video_seconds=self.video_seconds(point.timestamp),
                    )
                )
        return aligned


def suggest_anchor(track: Track, window: VideoWindow) -> Optional[TrackPoint]:
    """
    Propose a default sync point: the first track point after the video starts.

    The comparison uses raw timestamps, assuming both clocks roughly agree.

    Raises:
        AlignmentError: If the track has no timestamped points
    """
    timestamped = track.timestamped_points()
    if not timestamped:
        raise AlignmentError("Track has no timestamped points")

    for point in timestamped:
        if ensure_utc(point.timestamp) > window.start:
            return point
    return None
