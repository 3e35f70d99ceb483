"""Error taxonomy for trackoverlay.

Every failure raised by the pipeline derives from OverlayError so the
orchestrator can decide between aborting a job and falling back to an
untouched copy of the source video.
"""

from typing import Optional, Sequence


class OverlayError(Exception):
    """Base class for all trackoverlay failures."""


class ConfigError(OverlayError, ValueError):
    """Invalid interpolation bound, unknown anchor or missing selection."""


class SourceError(OverlayError):
    """Unparseable or unsupported track/video, or missing video metadata."""


class AlignmentError(OverlayError):
    """No timestamped track points, or an anchor that cannot be parsed."""


class InsufficientDataError(OverlayError):
    """Fewer points than a derivation needs (e.g. < 2 for a bounding box)."""


class BackendError(OverlayError):
    """The compositor failed; carries the effective operation sequence."""

    def __init__(self, message: str, operations: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.operations = list(operations or [])


class JobCancelledError(OverlayError):
    """The job was cancelled before the compositor ran."""
