"""Command-line interface for trackoverlay.

Usage:
    trackoverlay render <track> <video> -o <output> [options]   # Overlay a video
    trackoverlay suggest <track> <video>                        # Propose a sync point
    trackoverlay plan <track> <video> [options]                 # Dry run: print the plan
"""

import argparse
import sys
from typing import List, Optional

from .config import (
    DEFAULT_INTERPOLATION_SECONDS,
    DEFAULT_LOCALE,
    DEFAULT_TRAILING_SECONDS,
    SUPPORTED_LOCALES,
)
from .csv_writer import format_plan_csv
from .errors import OverlayError
from .models import Anchor, ChannelKind, OverlayChannel
from .pipeline import JobRequest, OverlayJob, suggest_sync_point
from .video_processor import format_plan

ANCHOR_CHOICES = ", ".join(a.value for a in Anchor)


def _banner(title: str) -> None:
    print("=" * 60, file=sys.stderr)
    print(title, file=sys.stderr)
    print("=" * 60, file=sys.stderr)


def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('track', help='Track file (.gpx, .tcx or .fit)')
    parser.add_argument('video', help='Video file with a creation_time tag')
    parser.add_argument(
        '--video-tz', metavar='ZONE',
        help='IANA time zone the camera clock was set to (default: UTC)'
    )


def _add_selection_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--sync', metavar='TIMESTAMP',
        help='Track instant (ISO-8601) that matches the first video frame '
             '(default: first track point after the video starts)'
    )
    parser.add_argument(
        '--speedometer', type=Anchor.parse, metavar='CORNER',
        help=f'Show the speedometer at a corner ({ANCHOR_CHOICES})'
    )
    parser.add_argument(
        '--track-map', type=Anchor.parse, metavar='CORNER',
        help=f'Show the track map at a corner ({ANCHOR_CHOICES})'
    )
    parser.add_argument(
        '--stats', type=Anchor.parse, metavar='CORNER',
        help=f'Show the stats panel at a corner ({ANCHOR_CHOICES})'
    )
    parser.add_argument(
        '--interpolation', type=float, default=DEFAULT_INTERPOLATION_SECONDS,
        metavar='SECONDS',
        help=f'Maximum gap between track points (default: {DEFAULT_INTERPOLATION_SECONDS})'
    )
    parser.add_argument(
        '--trailing', type=float, default=DEFAULT_TRAILING_SECONDS, metavar='SECONDS',
        help=f'How long the last frame stays visible (default: {DEFAULT_TRAILING_SECONDS})'
    )
    parser.add_argument(
        '--lang', choices=SUPPORTED_LOCALES, default=DEFAULT_LOCALE,
        help=f'Language for labels and messages (default: {DEFAULT_LOCALE})'
    )
    parser.add_argument(
        '--display-tz', metavar='ZONE',
        help='IANA time zone for the clock on the stats panel (default: UTC)'
    )
    parser.add_argument('--frames-csv', metavar='PATH', help='Also write per-frame data as CSV')


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog='trackoverlay',
        description='Overlay GPS track telemetry onto a video.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Speedometer bottom-left and map top-right, synced on a track instant
    trackoverlay render ride.gpx ride.mp4 -o out.mp4 \\
        --sync 2024-05-01T09:30:12Z --speedometer bottom-left --track-map top-right

    # Ask for a default sync point
    trackoverlay suggest ride.gpx ride.mp4

    # Inspect the composition plan without rendering anything
    trackoverlay plan ride.tcx ride.mp4 --stats top-left --csv plan.csv
        """
    )
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # 'render' subcommand
    render_parser = subparsers.add_parser(
        'render',
        help='Render overlays onto a video',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # All three overlays, Portuguese labels, local clock on the stats panel
    trackoverlay render ride.fit ride.mp4 -o out.mp4 --speedometer bottom-left \\
        --track-map top-right --stats top-left --lang pt --display-tz Europe/Lisbon

    # No overlay selected: the output is an exact copy of the video
    trackoverlay render ride.gpx ride.mp4 -o copy.mp4
        """
    )
    _add_source_arguments(render_parser)
    _add_selection_arguments(render_parser)
    render_parser.add_argument('-o', '--output', required=True, help='Output video file')

    # 'suggest' subcommand
    suggest_parser = subparsers.add_parser(
        'suggest',
        help='Propose a sync point: the first track point after the video starts',
    )
    _add_source_arguments(suggest_parser)

    # 'plan' subcommand
    plan_parser = subparsers.add_parser(
        'plan',
        help='Print the composition plan without rendering',
    )
    _add_source_arguments(plan_parser)
    _add_selection_arguments(plan_parser)
    plan_parser.add_argument('--csv', metavar='PATH', help='Write the plan as CSV')

    return parser


def channels_from_args(args: argparse.Namespace) -> List[OverlayChannel]:
    """Enabled channels for the corners given on the command line."""
    selections = [
        (ChannelKind.SPEEDOMETER, args.speedometer),
        (ChannelKind.TRACK_MAP, args.track_map),
        (ChannelKind.STATS, args.stats),
    ]
    return [
        OverlayChannel(kind=kind, enabled=True, anchor=anchor)
        for kind, anchor in selections
        if anchor is not None
    ]


def request_from_args(args: argparse.Namespace, output_path: str) -> JobRequest:
    return JobRequest(
        track_path=args.track,
        video_path=args.video,
        output_path=output_path,
        sync_timestamp=args.sync,
        channels=channels_from_args(args),
        interpolation_seconds=args.interpolation,
        lang=args.lang,
        trailing_seconds=args.trailing,
        display_tz=args.display_tz,
        video_tz=args.video_tz,
        frames_csv=args.frames_csv,
    )


def run_render_mode(args: argparse.Namespace) -> int:
    _banner("TRACK OVERLAY RENDER")
    job = OverlayJob(request_from_args(args, args.output))
    result = job.run()

    print("\n" + "=" * 60, file=sys.stderr)
    if result.ok:
        note = " (untouched copy)" if result.fallback else ""
        print(f"Output: {result.output_path}{note}", file=sys.stderr)
    else:
        print(f"FAILED in state {result.state.value}: {result.error}", file=sys.stderr)
    print("=" * 60, file=sys.stderr)
    return 0 if result.ok else 1


def run_suggest_mode(args: argparse.Namespace) -> int:
    point = suggest_sync_point(args.track, args.video, args.video_tz)
    if point is None:
        print("No track point is recorded after the video starts", file=sys.stderr)
        return 1
    print(point.timestamp.isoformat())
    return 0


def run_plan_mode(args: argparse.Namespace) -> int:
    _banner("COMPOSITION PLAN (DRY RUN)")
    job = OverlayJob(request_from_args(args, output_path="-"))
    prepared = job.prepare()
    if prepared is None or prepared.needs_fallback:
        print("Empty plan: the output would be a copy of the source video", file=sys.stderr)
        return 0

    for line in format_plan(prepared.plan.operations):
        print(line)
    if args.csv:
        with open(args.csv, "w") as f:
            f.write(format_plan_csv(prepared.plan.operations))
        print(f"\nPlan saved to: {args.csv}", file=sys.stderr)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    handlers = {
        'render': run_render_mode,
        'suggest': run_suggest_mode,
        'plan': run_plan_mode,
    }
    try:
        return handlers[args.command](args)
    except OverlayError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
