"""Rasterization of overlay assets with OpenCV.

All assets are BGRA PNG files with a transparent background. Dials are drawn
at RENDER_SCALE times their final size and downsampled, which gives smooth
edges without a font rasterizer.

Presentation policy lives here, not in the kinematics code:
- a missing speed, bearing, g-force or elevation is drawn as 0;
- the speedometer prefers the device's own speed sample over the GPS-derived
  speed when the current point carries one;
- the stats panel carries the last known heart rate, cadence and device
  speed forward across points without a sample (see SensorCarryForward);
- activity totals from the track file (calories, average heart rate) are
  appended to the stats panel when the file reports them.
"""

import math
import os
import unicodedata
from datetime import timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from .config import (
    DEFAULT_LOCALE,
    MARKER_RADIUS,
    RENDER_SCALE,
    SPEEDOMETER_SIZE,
    STATS_SIZE,
)
from .messages import t
from .models import (
    ActivitySummary,
    ChannelKind,
    CompositionPlan,
    RenderableFrame,
    SensorSample,
    Track,
    TrackPoint,
)
from .projection import ProjectionMapper
from .scheduler import TRACK_MAP_BASE_ASSET, TRACK_MAP_MARKER_ASSET

MAX_DIAL_SPEED = 120.0

# BGRA colors
WHITE = (255, 255, 255, 255)
RED = (0, 0, 255, 255)
ARC_BLUE = (255, 150, 0, 255)
SHADE = (0, 0, 0, 180)
TRACK_LINE = (0, 0, 0, 100)
FONT = cv2.FONT_HERSHEY_SIMPLEX
FONT_BOLD = cv2.FONT_HERSHEY_DUPLEX


def ascii_text(text: str) -> str:
    """Hershey fonts only cover ASCII; drop accents and anything else."""
    normalized = unicodedata.normalize("NFKD", text)
    return normalized.encode("ascii", "ignore").decode("ascii")


def speed_to_color(speed: float, max_speed: float = MAX_DIAL_SPEED) -> Tuple[int, int, int, int]:
    """Green at rest, yellow at half of max_speed, red at max_speed (BGRA)."""
    ratio = max(0.0, min(speed / max_speed, 1.0))
    green = (127.0, 255.0, 0.0)
    yellow = (255.0, 255.0, 0.0)
    red = (255.0, 0.0, 0.0)
    if ratio < 0.5:
        k = ratio * 2
        low, high = green, yellow
    else:
        k = (ratio - 0.5) * 2
        low, high = yellow, red
    r, g, b = (int(low[i] * (1 - k) + high[i] * k) for i in range(3))
    return (b, g, r, 255)


def _blank(width: int, height: int, scale: int = 1) -> np.ndarray:
    return np.zeros((height * scale, width * scale, 4), dtype=np.uint8)


def _save(image: np.ndarray, size: Tuple[int, int], output_path: str) -> str:
    width, height = size
    if image.shape[1] != width or image.shape[0] != height:
        image = cv2.resize(image, (width, height), interpolation=cv2.INTER_AREA)
    os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)
    if not cv2.imwrite(output_path, image):
        raise OSError(f"Could not write image {output_path}")
    return output_path


def _put_text(
    image: np.ndarray,
    text: str,
    origin: Tuple[int, int],
    height_px: float,
    color,
    font=FONT,
    thickness: int = 1,
    centered: bool = False,
) -> None:
    """Draw text whose capital letters are about height_px tall."""
    text = ascii_text(text)
    font_scale = height_px / 22.0
    x, y = origin
    if centered:
        (w, h), _ = cv2.getTextSize(text, font, font_scale, thickness)
        x -= w // 2
        y += h // 2
    cv2.putText(image, text, (int(x), int(y)), font, font_scale, color, thickness, cv2.LINE_AA)


def _rotate(point: Tuple[float, float], center: Tuple[float, float], angle_rad: float) -> Tuple[float, float]:
    s, c = math.sin(angle_rad), math.cos(angle_rad)
    px, py = point[0] - center[0], point[1] - center[1]
    return (px * c - py * s + center[0], px * s + py * c + center[1])


# --------------------------------------------------------------------------
# Speedometer
# --------------------------------------------------------------------------

def render_speedometer(
    speed_kmh: float,
    bearing: float,
    g_force: float,
    elevation: float,
    output_path: str,
    lang: str = DEFAULT_LOCALE,
    size: Tuple[int, int] = SPEEDOMETER_SIZE,
) -> str:
    """
    Draw a speed dial with compass, g-force and altitude badges.

    The arc starts pointing down and sweeps 270 degrees clockwise up to
    MAX_DIAL_SPEED km/h.
    """
    s = RENDER_SCALE
    width, height = size
    image = _blank(width, height, s)
    center = (width * s // 2, height * s // 2)
    radius = int(min(width, height) * 0.4 * s)

    cv2.circle(image, center, radius + 15 * s, SHADE, -1, cv2.LINE_AA)

    sweep = max(0.0, min(speed_kmh / MAX_DIAL_SPEED, 1.0)) * 270.0
    if sweep > 0:
        cv2.ellipse(image, center, (radius, radius), 0, 90, 90 + sweep, ARC_BLUE, 12 * s, cv2.LINE_AA)
    end = math.radians(90 + sweep)
    tip = (int(center[0] + radius * math.cos(end)), int(center[1] + radius * math.sin(end)))
    cv2.circle(image, tip, 6 * s, WHITE, -1, cv2.LINE_AA)

    for mark in range(0, int(MAX_DIAL_SPEED) + 1, 5):
        angle = math.radians(90 + mark / MAX_DIAL_SPEED * 270.0)
        tick = (15 if mark % 25 == 0 else 8) * s
        outer = (center[0] + math.cos(angle) * radius, center[1] + math.sin(angle) * radius)
        inner = (center[0] + math.cos(angle) * (radius - tick), center[1] + math.sin(angle) * (radius - tick))
        cv2.line(image, (int(inner[0]), int(inner[1])), (int(outer[0]), int(outer[1])), WHITE, s, cv2.LINE_AA)
        if mark % 25 == 0:
            label = (center[0] + math.cos(angle) * (radius - 35 * s), center[1] + math.sin(angle) * (radius - 35 * s))
            _put_text(image, str(mark), (int(label[0]), int(label[1])), 14 * s, WHITE, FONT_BOLD, s, centered=True)

    # Compass: letters fixed, needle rotated by the bearing
    compass = 40 * s
    letters = t("compass", lang)
    _put_text(image, letters[0], (center[0], center[1] - compass - 10 * s), 12 * s, WHITE, thickness=s, centered=True)
    _put_text(image, letters[1], (center[0], center[1] + compass + 10 * s), 12 * s, WHITE, thickness=s, centered=True)
    _put_text(image, letters[2], (center[0] + compass + 10 * s, center[1]), 12 * s, WHITE, thickness=s, centered=True)
    _put_text(image, letters[3], (center[0] - compass - 10 * s, center[1]), 12 * s, WHITE, thickness=s, centered=True)

    needle = [
        (center[0], center[1] - compass),
        (center[0] + 15 * s, center[1]),
        (center[0], center[1] + 15 * s),
        (center[0] - 15 * s, center[1]),
    ]
    rotated = np.array(
        [_rotate(p, center, math.radians(bearing)) for p in needle], dtype=np.int32
    )
    cv2.fillPoly(image, [rotated], RED, cv2.LINE_AA)

    _put_text(
        image, f"{speed_kmh:.0f}", (center[0] + 30 * s, center[1] + 75 * s),
        36 * s, speed_to_color(speed_kmh), FONT_BOLD, 2 * s,
    )
    _put_text(image, t("speed_unit", lang), (center[0] + 35 * s, center[1] + 100 * s), 12 * s, WHITE, thickness=s)

    g_center = (45 * s, 35 * s)
    cv2.circle(image, g_center, 30 * s, SHADE, -1, cv2.LINE_AA)
    _put_text(image, f"{g_force:.1f} g", g_center, 12 * s, WHITE, thickness=s, centered=True)

    alt_center = (45 * s, height * s - 45 * s)
    cv2.circle(image, alt_center, 30 * s, SHADE, -1, cv2.LINE_AA)
    _put_text(image, t("altitude", lang), (alt_center[0], alt_center[1] - 8 * s), 10 * s, WHITE, thickness=s, centered=True)
    _put_text(image, f"{elevation:.0f} m", (alt_center[0], alt_center[1] + 10 * s), 11 * s, WHITE, FONT_BOLD, s, centered=True)

    return _save(image, size, output_path)


# --------------------------------------------------------------------------
# Stats panel
# --------------------------------------------------------------------------

class SensorCarryForward:
    """Keeps the last known value of each sensor field.

    Synthetic and sparse points often have no sensor sample; the stats panel
    shows the most recent reading instead of blanking out.
    """

    def __init__(self) -> None:
        self.heart_rate: Optional[float] = None
        self.cadence: Optional[float] = None
        self.instant_speed: Optional[float] = None

    def update(self, sample: Optional[SensorSample]) -> SensorSample:
        if sample is not None:
            if sample.heart_rate is not None:
                self.heart_rate = sample.heart_rate
            if sample.cadence is not None:
                self.cadence = sample.cadence
            if sample.instant_speed is not None:
                self.instant_speed = sample.instant_speed
        return SensorSample(
            heart_rate=self.heart_rate,
            cadence=self.cadence,
            instant_speed=self.instant_speed,
        )


def stats_lines(
    frame: RenderableFrame,
    sensor: Optional[SensorSample],
    lang: str = DEFAULT_LOCALE,
    display_tz=None,
) -> List[str]:
    """Text lines shown on the stats panel for one frame."""
    metrics = frame.metrics
    point = frame.source_point
    distance_km = (metrics.cumulative_distance_m or 0.0) / 1000.0
    altitude = point.elevation if point.elevation is not None else 0.0
    gain = metrics.cumulative_elevation_gain_m or 0.0

    lines = [
        f"{t('distance', lang)}: {distance_km:.2f} km",
        f"{t('altitude', lang)}: {altitude:.0f} m",
        f"{t('elevation_gain', lang)}: {gain:.0f} m",
    ]
    if point.timestamp is not None:
        local = point.timestamp.astimezone(display_tz or timezone.utc)
        lines.append(f"{t('time', lang)}: {local:%H:%M:%S}")

    if sensor is not None:
        if sensor.heart_rate is not None:
            lines.append(f"{t('heart_rate', lang)}: {sensor.heart_rate:.0f} bpm")
        if sensor.cadence is not None:
            lines.append(f"{t('cadence', lang)}: {sensor.cadence:.0f} rpm")
        if sensor.instant_speed is not None:
            lines.append(f"{t('sensor_speed', lang)}: {sensor.instant_speed * 3.6:.1f} km/h")
    return lines


def activity_lines(summary: Optional[ActivitySummary], lang: str = DEFAULT_LOCALE) -> List[str]:
    """Whole-activity lines for the stats panel; empty when nothing is known."""
    if summary is None:
        return []
    lines = []
    if summary.total_calories > 0:
        lines.append(f"{t('calories', lang)}: {summary.total_calories:.0f} kcal")
    average_hr = summary.average_heart_rate()
    if average_hr is not None:
        lines.append(f"{t('average_heart_rate', lang)}: {average_hr:.0f} bpm")
    return lines


def render_stats(
    lines: Sequence[str],
    output_path: str,
    size: Tuple[int, int] = STATS_SIZE,
) -> str:
    """Draw a translucent panel with one text line per row."""
    width, height = size
    image = _blank(width, height)
    cv2.rectangle(image, (0, 0), (width - 1, height - 1), SHADE, -1)

    row = height / max(len(lines), 1)
    text_height = min(18.0, row * 0.6)
    for i, line in enumerate(lines):
        baseline = int(row * i + row / 2 + text_height / 2)
        _put_text(image, line, (12, baseline), text_height, WHITE)
    return _save(image, size, output_path)


# --------------------------------------------------------------------------
# Track map
# --------------------------------------------------------------------------

def render_track_map(
    points: Iterable[TrackPoint],
    projection: ProjectionMapper,
    output_path: str,
    color=TRACK_LINE,
    thickness: float = 2.0,
) -> str:
    """Draw the whole track path using the shared projection.

    Each recording segment is its own polyline; segment breaks are not joined.
    """
    s = RENDER_SCALE
    size = (projection.width, projection.height)
    image = _blank(projection.width, projection.height, s)
    polylines = []
    for run in Track(points=tuple(points)).segments():
        pixels = projection.project_many(run) * s
        if len(pixels) >= 2:
            polylines.append(np.round(pixels).astype(np.int32).reshape(-1, 1, 2))
    if polylines:
        cv2.polylines(image, polylines, False, color, max(1, int(thickness * s)), cv2.LINE_AA)
    return _save(image, size, output_path)


def render_marker(output_path: str, radius: int = MARKER_RADIUS, color=RED) -> str:
    """A filled dot; the asset is (2r+1) pixels square with the dot centered."""
    side = 2 * radius + 1
    image = _blank(side, side)
    cv2.circle(image, (radius, radius), radius, color, -1, cv2.LINE_AA)
    return _save(image, (side, side), output_path)


# --------------------------------------------------------------------------
# Plan rendering
# --------------------------------------------------------------------------

def speedometer_values(frame: RenderableFrame) -> Tuple[float, float, float, float]:
    """(speed km/h, bearing, g-force, elevation) with missing values as 0."""
    metrics = frame.metrics
    point = frame.source_point
    if point.sensor is not None and point.sensor.instant_speed is not None:
        speed = point.sensor.instant_speed * 3.6
    else:
        speed = metrics.speed_kmh if metrics.speed_kmh is not None else 0.0
    return (
        speed,
        metrics.bearing_deg if metrics.bearing_deg is not None else 0.0,
        metrics.g_force if metrics.g_force is not None else 0.0,
        point.elevation if point.elevation is not None else 0.0,
    )


class AssetRenderer:
    """Renders every asset a composition plan references, once each."""

    def __init__(
        self,
        asset_path: Callable[[str], str],
        lang: str = DEFAULT_LOCALE,
        display_tz=None,
        marker_radius: int = MARKER_RADIUS,
    ) -> None:
        """
        Args:
            asset_path: Maps an asset name to a file path in the job arena
            lang: Label language
            display_tz: tzinfo used for the clock on the stats panel
        """
        self.asset_path = asset_path
        self.lang = lang
        self.display_tz = display_tz
        self.marker_radius = marker_radius

    def render_plan(
        self,
        plan: CompositionPlan,
        frames: Sequence[RenderableFrame],
        map_points: Optional[Sequence[TrackPoint]] = None,
        map_projection: Optional[ProjectionMapper] = None,
        summary: Optional[ActivitySummary] = None,
    ) -> Dict[str, str]:
        """
        Render the assets of a plan.

        Ops are visited in plan order, so per-channel frames are rendered
        in time order and the sensor carry-forward sees them in sequence.

        Returns:
            Mapping of asset name to written file path
        """
        written: Dict[str, str] = {}
        carry = SensorCarryForward()
        totals = activity_lines(summary, self.lang)

        for op in plan.operations:
            if op.asset in written:
                continue
            path = self.asset_path(op.asset)

            if op.channel == ChannelKind.SPEEDOMETER:
                frame = frames[op.frame_index]
                speed, bearing, g, elevation = speedometer_values(frame)
                render_speedometer(speed, bearing, g, elevation, path, self.lang)
            elif op.channel == ChannelKind.STATS:
                frame = frames[op.frame_index]
                sensor = carry.update(frame.source_point.sensor)
                lines = stats_lines(frame, None if sensor.is_empty() else sensor, self.lang, self.display_tz)
                lines.extend(totals)
                render_stats(lines, path)
            elif op.asset == TRACK_MAP_BASE_ASSET:
                if map_projection is None:
                    raise ValueError("A track map projection is required to draw the map")
                points = map_points if map_points is not None else [f.source_point for f in frames]
                render_track_map(points, map_projection, path)
            elif op.asset == TRACK_MAP_MARKER_ASSET:
                render_marker(path, self.marker_radius)
            else:
                raise ValueError(f"Don't know how to render asset '{op.asset}'")

            written[op.asset] = path
        return written
