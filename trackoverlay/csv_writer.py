"""CSV export of frames and composition plans for diagnostics."""

import csv
import io
import sys
from typing import Optional, Sequence

from .models import CompositionOp, RenderableFrame

FRAME_COLUMNS = [
    "video_seconds",
    "timestamp",
    "latitude",
    "longitude",
    "elevation",
    "synthetic",
    "speed_kmh",
    "bearing_deg",
    "g_force",
    "distance_m",
    "elevation_gain_m",
    "heart_rate",
    "cadence",
    "sensor_speed",
]

PLAN_COLUMNS = [
    "channel",
    "asset",
    "anchor",
    "window_start",
    "window_end",
    "frame_index",
    "offset_x",
    "offset_y",
]


def _number(value: Optional[float], digits: int) -> str:
    """Fixed-point text, or an empty cell for a missing value."""
    return "" if value is None else f"{value:.{digits}f}"


def format_frames_csv(frames: Sequence[RenderableFrame]) -> str:
    """
    Format renderable frames as CSV content.

    Missing metrics and sensor values are written as empty cells.

    Args:
        frames: Frames in video order

    Returns:
        CSV content as a string, header included
    """
    output = io.StringIO(newline='')
    writer = csv.writer(output, lineterminator='\n')
    writer.writerow(FRAME_COLUMNS)

    for frame in frames:
        point = frame.source_point
        metrics = frame.metrics
        sensor = point.sensor
        writer.writerow([
            f"{frame.video_seconds:.3f}",
            point.timestamp.isoformat() if point.timestamp else "",
            f"{point.latitude:.7f}",
            f"{point.longitude:.7f}",
            _number(point.elevation, 1),
            "1" if point.synthetic else "0",
            _number(metrics.speed_kmh, 2),
            _number(metrics.bearing_deg, 1),
            _number(metrics.g_force, 3),
            _number(metrics.cumulative_distance_m, 1),
            _number(metrics.cumulative_elevation_gain_m, 1),
            _number(sensor.heart_rate if sensor else None, 0),
            _number(sensor.cadence if sensor else None, 0),
            _number(sensor.instant_speed if sensor else None, 2),
        ])

    return output.getvalue()


def write_frames_csv(frames: Sequence[RenderableFrame], output_path: str) -> None:
    """Write format_frames_csv output to a file."""
    content = format_frames_csv(frames)
    with open(output_path, "w") as f:
        f.write(content)
    print(f"Frame data saved to: {output_path}", file=sys.stderr)


def format_plan_csv(operations: Sequence[CompositionOp]) -> str:
    """
    Format composition ops as CSV content, one row per op.

    Static ops (visible for the whole video) have empty window cells.
    """
    output = io.StringIO(newline='')
    writer = csv.writer(output, lineterminator='\n')
    writer.writerow(PLAN_COLUMNS)

    for op in operations:
        writer.writerow([
            op.channel.value,
            op.asset,
            op.anchor.value,
            _number(op.window_start, 3),
            _number(op.window_end, 3),
            "" if op.frame_index is None else op.frame_index,
            f"{op.offset[0]:.2f}",
            f"{op.offset[1]:.2f}",
        ])

    return output.getvalue()
