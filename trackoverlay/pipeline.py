"""Job orchestration: from a track and a video to an overlaid video.

A job walks through LOADED, ALIGNED, INTERPOLATED, SCHEDULED, COMPOSED and
DONE. Any OverlayError sends it to FAILED. Situations that no enabled
channel depends on are not failures and deliver a byte-identical copy of the
source video instead:
- no overlay channel is enabled;
- no track point falls inside the video's time window;
- the frame data CSV cannot be written.
"""

import math
import os
import threading
from concurrent.futures import Executor, Future, ProcessPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from .arena import JobArena
from .clock_aligner import ClockAligner, parse_anchor, suggest_anchor
from .config import (
    DEFAULT_INTERPOLATION_SECONDS,
    DEFAULT_LOCALE,
    DEFAULT_TRAILING_SECONDS,
    MIN_INTERPOLATION_SECONDS,
    SUPPORTED_LOCALES,
)
from .csv_writer import write_frames_csv
from .errors import AlignmentError, ConfigError, JobCancelledError, OverlayError
from .interpolator import interpolate_track
from .kinematics import build_frames
from .messages import JobLog
from .models import (
    Anchor,
    ChannelKind,
    CompositionPlan,
    OverlayChannel,
    RenderableFrame,
    SyncAnchor,
    TrackPoint,
    VideoWindow,
)
from .plan_builder import build_composition_plan
from .projection import ProjectionMapper
from .renderer import AssetRenderer
from .scheduler import OverlayScheduler
from .track_reader import TrackFile, read_track
from .video_metadata import VideoMetadataProvider, resolve_timezone
from .video_processor import VideoProcessor


class JobState(Enum):
    LOADED = "loaded"
    ALIGNED = "aligned"
    INTERPOLATED = "interpolated"
    SCHEDULED = "scheduled"
    COMPOSED = "composed"
    DONE = "done"
    FAILED = "failed"


_STATE_ORDER = [
    JobState.LOADED,
    JobState.ALIGNED,
    JobState.INTERPOLATED,
    JobState.SCHEDULED,
    JobState.COMPOSED,
    JobState.DONE,
]


@dataclass
class JobRequest:
    """Everything a job needs, as chosen by the user."""

    track_path: str
    video_path: str
    output_path: str
    sync_timestamp: Optional[str] = None  # None: use the suggested anchor
    channels: List[OverlayChannel] = field(default_factory=list)
    interpolation_seconds: float = DEFAULT_INTERPOLATION_SECONDS
    lang: str = DEFAULT_LOCALE
    trailing_seconds: float = DEFAULT_TRAILING_SECONDS
    display_tz: Optional[str] = None  # IANA zone for the stats clock
    video_tz: Optional[str] = None  # IANA zone the camera clock is set to
    frames_csv: Optional[str] = None

    def validate(self) -> None:
        """
        Check the selection rules.

        Raises:
            ConfigError: On an invalid bound, locale, anchor, channel list,
                         trailing duration or time zone
        """
        if not self.track_path or not self.video_path:
            raise ConfigError("Both a track file and a video file are required")
        if not self.output_path:
            raise ConfigError("An output path is required")
        if (
            self.interpolation_seconds is None
            or not math.isfinite(self.interpolation_seconds)
            or self.interpolation_seconds < MIN_INTERPOLATION_SECONDS
        ):
            raise ConfigError(
                f"Interpolation interval must be at least {MIN_INTERPOLATION_SECONDS} "
                f"second(s), got {self.interpolation_seconds}"
            )
        if self.lang not in SUPPORTED_LOCALES:
            raise ConfigError(
                f"Unsupported language '{self.lang}' "
                f"(expected one of: {', '.join(SUPPORTED_LOCALES)})"
            )
        if (
            self.trailing_seconds is None
            or not math.isfinite(self.trailing_seconds)
            or self.trailing_seconds <= 0
        ):
            raise ConfigError(
                f"Trailing duration must be a positive number, got {self.trailing_seconds}"
            )

        seen = set()
        for channel in self.channels:
            if not isinstance(channel.anchor, Anchor):
                raise ConfigError(f"Invalid anchor for {channel.kind.value}: {channel.anchor!r}")
            if channel.kind in seen:
                raise ConfigError(f"Channel {channel.kind.value} selected twice")
            seen.add(channel.kind)

        resolve_timezone(self.display_tz)
        resolve_timezone(self.video_tz)

    @property
    def enabled_channels(self) -> List[OverlayChannel]:
        return [c for c in self.channels if c.enabled]


@dataclass
class JobResult:
    output_path: Optional[str]
    state: JobState
    fallback: bool = False
    logs: List[str] = field(default_factory=list)
    error: Optional[OverlayError] = None

    @property
    def ok(self) -> bool:
        return self.state == JobState.DONE


@dataclass
class PreparedJob:
    """Everything computed before rendering.

    An empty plan, or a degraded run, means the source is copied untouched.
    """

    window: VideoWindow
    track_file: TrackFile
    anchor: SyncAnchor
    frames: List[RenderableFrame]
    plan: CompositionPlan
    map_projection: Optional[ProjectionMapper] = None
    degraded: bool = False  # a step no channel needs has failed

    @property
    def needs_fallback(self) -> bool:
        return self.plan.is_empty or self.degraded


class OverlayJob:
    """One overlay job: a single-threaded, deterministic pipeline run."""

    def __init__(
        self,
        request: JobRequest,
        metadata_provider: Optional[VideoMetadataProvider] = None,
        processor: Optional[VideoProcessor] = None,
        track_loader: Optional[Callable[[str], TrackFile]] = None,
        arena_dir: Optional[str] = None,
        echo: bool = True,
    ) -> None:
        """
        Args:
            request: The user's selections
            metadata_provider: Video metadata source (for testing injection)
            processor: Compositor backend (for testing injection)
            track_loader: Track file reader (for testing injection)
            arena_dir: Parent directory for the job's temporary directory
            echo: Echo progress messages to stderr
        """
        self.request = request
        self.metadata_provider = metadata_provider or VideoMetadataProvider()
        self.processor = processor or VideoProcessor()
        self.track_loader = track_loader or read_track
        self.arena_dir = arena_dir
        self.log = JobLog(request.lang if request.lang in SUPPORTED_LOCALES else DEFAULT_LOCALE, echo)
        self.state: Optional[JobState] = None
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """Ask the job to stop; honored before rendering and composition."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _advance(self, state: JobState) -> None:
        if self.state in (JobState.DONE, JobState.FAILED):
            raise RuntimeError(f"Job already finished in state {self.state.value}")
        if state == JobState.FAILED:
            self.state = state
            return
        current = -1 if self.state is None else _STATE_ORDER.index(self.state)
        if _STATE_ORDER.index(state) <= current:
            raise RuntimeError(
                f"Invalid transition {self.state.value} -> {state.value}"
            )
        self.state = state

    def _check_cancelled(self) -> None:
        if self.cancelled:
            raise JobCancelledError(self.log.add("job_cancelled"))

    def prepare(self) -> Optional[PreparedJob]:
        """
        Load, align, interpolate and schedule without touching any video.

        Returns:
            PreparedJob, or None when no channel is enabled

        Raises:
            OverlayError: On invalid input or unusable sources
        """
        request = self.request
        request.validate()
        if not request.enabled_channels:
            return None

        self.log.add("reading_video_metadata", request.video_path)
        window = self.metadata_provider.get_video_window(request.video_path, request.video_tz)
        self.log.add("video_start_time", window.start.isoformat())

        self.log.add("reading_track", request.track_path)
        track_file = self.track_loader(request.track_path)
        self.log.add("track_read_success")
        if track_file.has_sensor_data:
            self.log.add("sensor_data_found")
        summary = track_file.summary
        if summary.total_time_seconds > 0:
            average = summary.average_speed() * 3.6
            self.log.add(
                "activity_totals",
                summary.sport or "-",
                f"{summary.total_distance_meters / 1000.0:.2f} km",
                f"{summary.total_time_seconds / 60.0:.0f} min",
                f"{average:.1f} km/h",
            )
        self._advance(JobState.LOADED)

        if request.sync_timestamp:
            anchor = parse_anchor(request.sync_timestamp)
        else:
            suggested = suggest_anchor(track_file.track, window)
            if suggested is None:
                raise AlignmentError("No track point is recorded after the video starts")
            anchor = SyncAnchor(track_timestamp=suggested.timestamp)
        aligner = ClockAligner(window, anchor)
        self.log.add("sync_point_selected", anchor.track_timestamp.isoformat())
        self.log.add("time_offset_calculated", f"{aligner.offset_seconds:.3f}")
        self._advance(JobState.ALIGNED)

        # Densify the whole track so neighbors outside the window still feed
        # speed and g-force at the window edges.
        self.log.add("interpolating_points")
        dense = interpolate_track(track_file.track, request.interpolation_seconds)
        self.log.add("interpolation_complete", len(dense) - len(track_file.track))
        aligned = aligner.align(dense.points)
        self.log.add("points_in_window", len(aligned))
        self._advance(JobState.INTERPOLATED)

        frames = build_frames(dense.points, aligned)
        degraded = False
        if request.frames_csv:
            try:
                write_frames_csv(frames, request.frames_csv)
            except OSError as e:
                self.log.add("frames_csv_failed", e)
                degraded = True

        scheduler = OverlayScheduler(
            trailing_seconds=request.trailing_seconds,
            video_duration=window.duration,
        )
        projection = None
        enabled_kinds = {c.kind for c in request.enabled_channels}
        if frames and ChannelKind.TRACK_MAP in enabled_kinds:
            projection = scheduler.projection_for(track_file.track.points)

        schedules = scheduler.schedule(frames, request.channels, projection)
        plan = build_composition_plan(schedules, window.duration)
        self._advance(JobState.SCHEDULED)

        return PreparedJob(
            window=window,
            track_file=track_file,
            anchor=anchor,
            frames=frames,
            plan=plan,
            map_projection=projection,
            degraded=degraded,
        )

    def run(self) -> JobResult:
        """
        Run the job to completion.

        Returns:
            JobResult; a failed job carries the OverlayError that stopped it
        """
        try:
            with JobArena(self.arena_dir) as arena:
                try:
                    fallback = self._execute(arena)
                finally:
                    self.log.add("cleaning_up")
        except OverlayError as e:
            if not isinstance(e, JobCancelledError):
                self.log.add("error_occurred", e)
            self._advance(JobState.FAILED)
            return JobResult(
                output_path=None,
                state=self.state,
                logs=list(self.log.lines),
                error=e,
            )
        except Exception:
            self.state = JobState.FAILED
            raise

        self.log.add("processing_complete")
        return JobResult(
            output_path=self.request.output_path,
            state=self.state,
            fallback=fallback,
            logs=list(self.log.lines),
        )

    def _execute(self, arena: JobArena) -> bool:
        """Produce the output inside the arena; True when it is a plain copy."""
        request = self.request
        prepared = self.prepare()
        extension = os.path.splitext(request.video_path)[1] or ".mp4"
        staged = arena.path("output" + extension)

        if prepared is None or prepared.needs_fallback:
            if prepared is None:
                self.log.add("no_overlay_selected")
            elif prepared.plan.is_empty:
                self.log.add("no_track_match")
            self.processor.copy_source(request.video_path, staged)
            arena.publish(staged, request.output_path)
            self._advance(JobState.DONE)
            return True

        self._check_cancelled()
        self.log.add("generating_assets")
        renderer = AssetRenderer(
            arena.asset_path,
            lang=request.lang,
            display_tz=resolve_timezone(request.display_tz),
        )
        written = renderer.render_plan(
            prepared.plan,
            prepared.frames,
            map_points=prepared.track_file.track.points,
            map_projection=prepared.map_projection,
            summary=prepared.track_file.summary,
        )
        self.log.add("assets_generated", len(written))

        self._check_cancelled()
        self.log.add("generating_final_video")
        self.processor.compose(request.video_path, prepared.plan, arena.assets_dir, staged)
        self._advance(JobState.COMPOSED)

        arena.publish(staged, request.output_path)
        self.log.add("final_video_success")
        self._advance(JobState.DONE)
        return False


def run_job(request: JobRequest, echo: bool = True) -> JobResult:
    """Run one job with the default collaborators."""
    return OverlayJob(request, echo=echo).run()


def submit_job(request: JobRequest, executor: Optional[Executor] = None) -> Future:
    """
    Run a job on a worker so the caller is not blocked.

    Args:
        request: Job selections
        executor: Executor to use; a single-worker process pool otherwise

    Returns:
        Future resolving to the JobResult
    """
    if executor is not None:
        return executor.submit(run_job, request)

    pool = ProcessPoolExecutor(max_workers=1)
    future = pool.submit(run_job, request)
    pool.shutdown(wait=False)
    return future


def suggest_sync_point(
    track_path: str,
    video_path: str,
    video_tz: Optional[str] = None,
    metadata_provider: Optional[VideoMetadataProvider] = None,
    track_loader: Optional[Callable[[str], TrackFile]] = None,
) -> Optional[TrackPoint]:
    """
    Propose a default sync point for a track and video pair.

    Returns:
        The first track point recorded after the video starts, or None
    """
    provider = metadata_provider or VideoMetadataProvider()
    loader = track_loader or read_track
    window = provider.get_video_window(video_path, video_tz)
    return suggest_anchor(loader(track_path).track, window)
