"""Normalization of channel schedules into a single composition plan."""

import math
from typing import List, Optional, Sequence

from .errors import ConfigError
from .models import ChannelKind, CompositionOp, CompositionPlan
from .scheduler import ChannelSchedule

# Tolerance when comparing window edges
WINDOW_EPSILON = 1e-6


def check_windows(kind: ChannelKind, operations: Sequence[CompositionOp]) -> None:
    """
    Verify that a channel's timed ops form one contiguous, ordered span.

    Raises:
        ConfigError: On a gap, an overlap or an inverted window
    """
    timed = [op for op in operations if not op.is_static]
    for i, op in enumerate(timed):
        if op.window_end < op.window_start - WINDOW_EPSILON:
            raise ConfigError(
                f"{kind.value}: window {i} ends before it starts "
                f"({op.window_start:.3f} > {op.window_end:.3f})"
            )
        if i == 0:
            continue
        previous_end = timed[i - 1].window_end
        if not math.isclose(op.window_start, previous_end, abs_tol=WINDOW_EPSILON):
            raise ConfigError(
                f"{kind.value}: window {i} starts at {op.window_start:.3f}s "
                f"but the previous one ends at {previous_end:.3f}s"
            )


def build_composition_plan(
    schedules: Sequence[ChannelSchedule],
    video_duration: float,
) -> CompositionPlan:
    """
    Flatten schedules into an ordered chain of CompositionOp.

    Schedule order is kept, so it decides visual stacking. Each op's output
    is the next op's base layer.

    Args:
        schedules: Channel schedules in stacking order
        video_duration: Duration of the source video in seconds

    Returns:
        CompositionPlan; empty when no schedule has operations, which tells
        the caller to deliver an untouched copy of the source.

    Raises:
        ConfigError: If a schedule belongs to a disabled channel or its
                     windows are not contiguous
    """
    operations: List[CompositionOp] = []
    seen = set()
    for schedule in schedules:
        kind = schedule.channel.kind
        if not schedule.channel.enabled:
            raise ConfigError(f"Schedule given for disabled channel {kind.value}")
        if kind in seen:
            raise ConfigError(f"Channel {kind.value} scheduled twice")
        seen.add(kind)

        if not schedule.operations:
            continue
        check_windows(kind, schedule.operations)
        operations.extend(schedule.operations)

    return CompositionPlan(operations=tuple(operations), video_duration=video_duration)


def channel_span(plan: CompositionPlan, kind: ChannelKind) -> Optional[tuple]:
    """(first start, last end) covered by a channel's timed ops."""
    timed = [op for op in plan.for_channel(kind) if not op.is_static]
    if not timed:
        return None
    return timed[0].window_start, timed[-1].window_end
