"""Trackoverlay - Overlay GPS track telemetry onto action-camera videos."""

from .errors import (
    OverlayError,
    ConfigError,
    SourceError,
    AlignmentError,
    InsufficientDataError,
    BackendError,
    JobCancelledError,
)
from .models import (
    GeoPoint,
    SensorSample,
    TrackPoint,
    Track,
    ActivitySummary,
    VideoWindow,
    SyncAnchor,
    AlignedPoint,
    FrameMetrics,
    RenderableFrame,
    Anchor,
    ChannelKind,
    OverlayChannel,
    CompositionOp,
    CompositionPlan,
)
from .clock_aligner import ClockAligner, parse_anchor, suggest_anchor
from .interpolator import interpolate_points, interpolate_track
from .kinematics import (
    distance_2d,
    distance_3d,
    speed_kmh,
    bearing_deg,
    g_force,
    CumulativeTotals,
    build_frames,
)
from .projection import BoundingBox, ProjectionMapper, bounding_box
from .scheduler import ChannelSchedule, OverlayScheduler
from .plan_builder import build_composition_plan
from .track_reader import TrackFile, read_track
from .video_metadata import VideoMetadataProvider
from .renderer import AssetRenderer, SensorCarryForward
from .video_processor import VideoProcessor, resolve_anchor
from .csv_writer import format_frames_csv, write_frames_csv, format_plan_csv
from .pipeline import (
    JobRequest,
    JobResult,
    JobState,
    OverlayJob,
    run_job,
    submit_job,
    suggest_sync_point,
)

__all__ = [
    # Errors
    "OverlayError",
    "ConfigError",
    "SourceError",
    "AlignmentError",
    "InsufficientDataError",
    "BackendError",
    "JobCancelledError",
    # Models
    "GeoPoint",
    "SensorSample",
    "TrackPoint",
    "Track",
    "ActivitySummary",
    "VideoWindow",
    "SyncAnchor",
    "AlignedPoint",
    "FrameMetrics",
    "RenderableFrame",
    "Anchor",
    "ChannelKind",
    "OverlayChannel",
    "CompositionOp",
    "CompositionPlan",
    # Alignment
    "ClockAligner",
    "parse_anchor",
    "suggest_anchor",
    # Interpolation
    "interpolate_points",
    "interpolate_track",
    # Kinematics
    "distance_2d",
    "distance_3d",
    "speed_kmh",
    "bearing_deg",
    "g_force",
    "CumulativeTotals",
    "build_frames",
    # Projection
    "BoundingBox",
    "ProjectionMapper",
    "bounding_box",
    # Scheduling
    "ChannelSchedule",
    "OverlayScheduler",
    "build_composition_plan",
    # Sources
    "TrackFile",
    "read_track",
    "VideoMetadataProvider",
    # Rendering and composition
    "AssetRenderer",
    "SensorCarryForward",
    "VideoProcessor",
    "resolve_anchor",
    # CSV
    "format_frames_csv",
    "write_frames_csv",
    "format_plan_csv",
    # Jobs
    "JobRequest",
    "JobResult",
    "JobState",
    "OverlayJob",
    "run_job",
    "submit_job",
    "suggest_sync_point",
]
