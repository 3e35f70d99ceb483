"""Video composition operations using MoviePy."""

import os
import shutil
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
from moviepy import (
    ColorClip,
    CompositeVideoClip,
    ImageClip,
    VideoClip,
    VideoFileClip,
)

from .config import ANCHOR_MARGIN, OUTPUT_AUDIO_CODEC, OUTPUT_CODEC
from .errors import BackendError
from .models import Anchor, CompositionOp, CompositionPlan


def resolve_anchor(
    anchor: Anchor,
    video_size: Tuple[int, int],
    box_size: Tuple[int, int],
    margin: int = ANCHOR_MARGIN,
) -> Tuple[int, int]:
    """
    Top-left pixel of a box pinned to a corner of the video.

    Args:
        anchor: Corner to pin to
        video_size: (width, height) of the video
        box_size: (width, height) of the overlay box
        margin: Distance from the video edges in pixels
    """
    video_w, video_h = video_size
    box_w, box_h = box_size
    left = margin
    right = video_w - box_w - margin
    top = margin
    bottom = video_h - box_h - margin
    return {
        Anchor.TOP_LEFT: (left, top),
        Anchor.TOP_RIGHT: (right, top),
        Anchor.BOTTOM_LEFT: (left, bottom),
        Anchor.BOTTOM_RIGHT: (right, bottom),
    }[anchor]


def format_op(op: CompositionOp) -> str:
    """One-line description of an op for diagnostics."""
    if op.is_static:
        window = "whole video"
    else:
        window = f"{op.window_start:.3f}s-{op.window_end:.3f}s"
    text = f"{op.channel.value} {op.asset} @ {op.anchor.value} [{window}]"
    if op.offset != (0.0, 0.0):
        text += f" offset=({op.offset[0]:.1f}, {op.offset[1]:.1f})"
    return text


def format_plan(operations: Sequence[CompositionOp]) -> List[str]:
    return [format_op(op) for op in operations]


class VideoProcessor:
    """Handles all MoviePy video operations."""

    def __init__(
        self, clip_loader: Optional[Callable[[str], VideoFileClip]] = None
    ) -> None:
        """
        Initialize processor with optional custom clip loader.

        Args:
            clip_loader: Function to load video clips (for testing injection)
        """
        self._load_clip = clip_loader or VideoFileClip

    def load_video(self, filepath: str) -> VideoFileClip:
        """Load a video file."""
        return self._load_clip(filepath)

    def overlay_position(
        self,
        op: CompositionOp,
        video_size: Tuple[int, int],
        asset_size: Tuple[int, int],
        margin: int = ANCHOR_MARGIN,
    ) -> Tuple[int, int]:
        """Pixel position of an op's asset on the video."""
        box = op.box_size or asset_size
        x, y = resolve_anchor(op.anchor, video_size, box, margin)
        return (int(round(x + op.offset[0])), int(round(y + op.offset[1])))

    def build_composite(
        self,
        clip: VideoClip,
        plan: CompositionPlan,
        assets_dir: str,
    ) -> VideoClip:
        """
        Layer every op of a plan over the clip.

        Ops are stacked in plan order: each op is drawn over the result of
        the ones before it. Static ops span the whole clip; timed ops are
        clipped to the clip's duration and dropped when that leaves nothing.

        Args:
            clip: Base video clip
            plan: Composition plan
            assets_dir: Directory the plan's asset names are relative to

        Returns:
            Composite clip with the base clip's size and duration
        """
        layers = [clip]
        for op in plan.operations:
            path = os.path.join(assets_dir, *op.asset.split("/"))
            image = ImageClip(path)

            if op.is_static:
                image = image.with_start(0).with_duration(clip.duration)
            else:
                end = min(op.window_end, clip.duration)
                if end - op.window_start <= 0:
                    continue
                image = image.with_start(op.window_start).with_end(end)

            image = image.with_position(self.overlay_position(op, clip.size, image.size))
            layers.append(image)

        return CompositeVideoClip(layers, size=clip.size).with_duration(clip.duration)

    def compose(
        self,
        source_path: str,
        plan: CompositionPlan,
        assets_dir: str,
        output_path: str,
    ) -> str:
        """
        Render a plan over a source video into output_path.

        Raises:
            BackendError: If loading, compositing or encoding fails. The
                          error carries the effective op sequence.
        """
        clip = None
        try:
            clip = self.load_video(source_path)
            composite = self.build_composite(clip, plan, assets_dir)
            self.export(composite, output_path, audio_from=clip, fps=clip.fps or 30)
        except (OSError, ValueError, RuntimeError, KeyError) as e:
            raise BackendError(
                f"Video composition failed: {e}", format_plan(plan.operations)
            ) from e
        finally:
            if clip is not None:
                clip.close()
        return output_path

    def copy_source(self, source_path: str, output_path: str) -> str:
        """Deliver the source video untouched."""
        try:
            shutil.copyfile(source_path, output_path)
        except OSError as e:
            raise BackendError(f"Could not copy {source_path}: {e}") from e
        return output_path

    def export(
        self,
        clip: VideoClip,
        output_path: str,
        audio_from: Optional[VideoClip] = None,
        fps: float = 30,
        codec: str = OUTPUT_CODEC,
        audio_codec: str = OUTPUT_AUDIO_CODEC,
    ) -> None:
        """
        Export the final video to file.

        Args:
            clip: Video clip to export
            output_path: Output file path
            audio_from: Optional clip to use audio from (typically the source)
            fps: Frames per second
            codec: Video codec
            audio_codec: Audio codec
        """
        if audio_from is not None and audio_from.audio is not None:
            clip = clip.with_audio(audio_from.audio)

        clip.write_videofile(
            output_path,
            fps=fps,
            codec=codec,
            audio_codec=audio_codec,
            logger=None,
        )


class SyntheticClipFactory:
    """Factory for creating synthetic clips for testing."""

    @staticmethod
    def create_color_clip(
        duration: float,
        size: tuple = (320, 240),
        color: tuple = (0, 0, 0),
        fps: int = 24,
    ) -> VideoClip:
        """Create a solid color clip for testing."""
        return ColorClip(size=size, color=color, duration=duration).with_fps(fps)

    @staticmethod
    def create_gradient_clip(
        duration: float,
        size: tuple = (320, 240),
        fps: int = 24,
    ) -> VideoClip:
        """
        Create a clip with time-based color gradient.

        The red channel increases with time, so a frame's color tells which
        moment of the source it came from.
        """

        def make_frame(t):
            frame = np.zeros((size[1], size[0], 3), dtype=np.uint8)
            frame[:, :, 0] = int((t / duration) * 255) if duration > 0 else 0
            return frame

        return VideoClip(make_frame, duration=duration).with_fps(fps)
