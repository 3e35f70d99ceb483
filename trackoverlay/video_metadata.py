"""Video metadata probing: wall-clock start and duration of a video."""

from datetime import timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from moviepy.video.io.ffmpeg_reader import ffmpeg_parse_infos

from .clock_aligner import parse_instant
from .errors import ConfigError, SourceError
from .models import VideoWindow


def find_creation_time(infos: dict) -> Optional[str]:
    """
    Locate the creation_time tag in ffmpeg info output.

    The container-level tag wins; otherwise the first video stream that
    carries one is used.
    """
    creation = (infos.get("metadata") or {}).get("creation_time")
    if creation:
        return creation

    for input_file in infos.get("inputs") or []:
        for stream in input_file.get("streams") or []:
            if stream.get("stream_type") not in (None, "video"):
                continue
            creation = (stream.get("metadata") or {}).get("creation_time")
            if creation:
                return creation
    return None


def resolve_timezone(name: Optional[str]):
    """ZoneInfo for an IANA name, or None when no name is given."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigError(f"Unknown time zone '{name}'") from None


class VideoMetadataProvider:
    """Builds a VideoWindow from a video's embedded metadata."""

    def __init__(self, info_loader: Optional[Callable[[str], dict]] = None) -> None:
        """
        Args:
            info_loader: Function returning ffmpeg info for a path (for
                         testing injection)
        """
        self._load_infos = info_loader or ffmpeg_parse_infos

    def probe(self, video_path: str) -> dict:
        try:
            return self._load_infos(video_path)
        except FileNotFoundError as e:
            raise SourceError(
                f"ffmpeg not found or video missing ({e}). "
                "Make sure FFmpeg is installed and the file exists."
            ) from e
        except (IOError, OSError) as e:
            raise SourceError(f"Cannot read video metadata for {video_path}: {e}") from e

    def get_video_window(self, video_path: str, local_tz: Optional[str] = None) -> VideoWindow:
        """
        Derive the video's wall-clock window.

        Args:
            video_path: Path to the video file
            local_tz: IANA zone name. When given, the creation time is read
                      as local wall-clock time in that zone (some cameras
                      write local time while labelling it UTC).

        Returns:
            VideoWindow spanning creation time to creation time + duration

        Raises:
            SourceError: If creation_time or duration are missing or invalid
        """
        zone = resolve_timezone(local_tz)
        infos = self.probe(video_path)

        creation_text = find_creation_time(infos)
        if not creation_text:
            raise SourceError(f"Tag 'creation_time' not found in {video_path}")
        try:
            start = parse_instant(creation_text)
        except ValueError:
            raise SourceError(f"Invalid creation_time '{creation_text}' in {video_path}") from None

        if zone is not None:
            start = start.replace(tzinfo=zone).astimezone(timezone.utc)

        duration = infos.get("duration")
        if duration is None or duration <= 0:
            raise SourceError(f"Duration not found in {video_path}")

        return VideoWindow.from_duration(start, float(duration))
