"""Tests for job orchestration with injected collaborators."""

import os
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import pytest

from trackoverlay.errors import (
    AlignmentError,
    BackendError,
    ConfigError,
    JobCancelledError,
    SourceError,
)
from trackoverlay.models import Anchor, ChannelKind, OverlayChannel
from trackoverlay.pipeline import (
    JobRequest,
    JobState,
    OverlayJob,
    submit_job,
    suggest_sync_point,
)
from trackoverlay.video_metadata import VideoMetadataProvider
from trackoverlay.video_processor import VideoProcessor, format_plan

ALL_CHANNELS = [
    OverlayChannel(ChannelKind.SPEEDOMETER, anchor=Anchor.BOTTOM_LEFT),
    OverlayChannel(ChannelKind.TRACK_MAP, anchor=Anchor.TOP_RIGHT),
    OverlayChannel(ChannelKind.STATS, anchor=Anchor.TOP_LEFT),
]


class RecordingProcessor(VideoProcessor):
    """Backend double that records plans instead of encoding video."""

    def __init__(self, fail=False):
        super().__init__()
        self.fail = fail
        self.plans = []
        self.assets_seen = []

    def compose(self, source_path, plan, assets_dir, output_path):
        if self.fail:
            raise BackendError("encoder crashed", format_plan(plan.operations))
        self.plans.append(plan)
        self.assets_seen = [
            os.path.exists(os.path.join(assets_dir, *op.asset.split("/")))
            for op in plan.operations
        ]
        with open(output_path, "wb") as f:
            f.write(b"composed")
        return output_path


@pytest.fixture
def source_video(tmp_path):
    path = tmp_path / "ride.mp4"
    path.write_bytes(os.urandom(2048))
    return str(path)


@pytest.fixture
def provider(ffmpeg_infos):
    return VideoMetadataProvider(info_loader=lambda path: ffmpeg_infos(duration=60.0))


@pytest.fixture
def make_request(gpx_file, source_video, tmp_path):
    def _create(**kwargs):
        values = dict(
            track_path=gpx_file,
            video_path=source_video,
            output_path=str(tmp_path / "out" / "final.mp4"),
            sync_timestamp="2024-05-01T09:30:00Z",
            channels=list(ALL_CHANNELS),
        )
        values.update(kwargs)
        return JobRequest(**values)

    return _create


@pytest.fixture
def make_job(provider, tmp_path):
    arena_dir = tmp_path / "arenas"
    arena_dir.mkdir()

    def _create(request, processor=None):
        return OverlayJob(
            request,
            metadata_provider=provider,
            processor=processor or RecordingProcessor(),
            arena_dir=str(arena_dir),
            echo=False,
        )

    return _create


class TestJobRequest:
    def test_valid_request(self, make_request):
        make_request().validate()

    @pytest.mark.parametrize("bound", [0, 0.5, -1, None, float("nan")])
    def test_bound_below_one(self, make_request, bound):
        with pytest.raises(ConfigError, match="at least"):
            make_request(interpolation_seconds=bound).validate()

    @pytest.mark.parametrize("trailing", [0, -1.0, None, float("nan"), float("inf")])
    def test_trailing_must_be_positive_number(self, make_request, trailing):
        with pytest.raises(ConfigError, match="Trailing"):
            make_request(trailing_seconds=trailing).validate()

    def test_unknown_language(self, make_request):
        with pytest.raises(ConfigError, match="language"):
            make_request(lang="fr").validate()

    def test_duplicate_channel(self, make_request):
        channels = [OverlayChannel(ChannelKind.STATS), OverlayChannel(ChannelKind.STATS)]

        with pytest.raises(ConfigError, match="twice"):
            make_request(channels=channels).validate()

    def test_symbolic_anchor_required(self, make_request):
        channels = [OverlayChannel(ChannelKind.STATS, anchor="top-left")]

        with pytest.raises(ConfigError, match="Invalid anchor"):
            make_request(channels=channels).validate()

    def test_unknown_time_zone(self, make_request):
        with pytest.raises(ConfigError):
            make_request(display_tz="Nowhere/Special").validate()

    def test_enabled_channels(self, make_request):
        channels = [
            OverlayChannel(ChannelKind.STATS, enabled=False),
            OverlayChannel(ChannelKind.SPEEDOMETER),
        ]

        assert [c.kind for c in make_request(channels=channels).enabled_channels] == [
            ChannelKind.SPEEDOMETER
        ]


class TestOverlayJob:
    def test_full_run(self, make_request, make_job):
        request = make_request()
        processor = RecordingProcessor()
        job = make_job(request, processor)

        result = job.run()

        assert result.ok
        assert result.state == JobState.DONE
        assert not result.fallback
        with open(request.output_path, "rb") as f:
            assert f.read() == b"composed"
        # 11 frames (0..10 s at 1 s): 11 + (1 + 11) + 11 ops
        assert len(processor.plans[0].operations) == 34
        assert all(processor.assets_seen)

    def test_arena_removed_after_run(self, make_request, make_job, tmp_path):
        make_job(make_request()).run()

        assert os.listdir(tmp_path / "arenas") == []

    def test_no_channels_copies_source(self, make_request, make_job, source_video):
        request = make_request(channels=[])
        processor = RecordingProcessor()

        result = make_job(request, processor).run()

        assert result.ok
        assert result.fallback
        assert processor.plans == []
        with open(source_video, "rb") as src, open(request.output_path, "rb") as out:
            assert out.read() == src.read()

    def test_disabled_channels_copy_source(self, make_request, make_job):
        channels = [OverlayChannel(ChannelKind.STATS, enabled=False)]

        result = make_job(make_request(channels=channels)).run()

        assert result.fallback

    def test_no_track_match_copies_source(self, make_request, make_job, source_video):
        """An anchor 90 minutes early pushes every point past the video."""
        request = make_request(sync_timestamp="2024-05-01T08:00:00Z")

        result = make_job(request).run()

        assert result.ok
        assert result.fallback
        assert any("No track point matched" in line for line in result.logs)
        with open(source_video, "rb") as src, open(request.output_path, "rb") as out:
            assert out.read() == src.read()

    def test_suggested_anchor_used_without_sync(self, make_request, make_job):
        """Without a sync timestamp the first point after the start is used."""
        result = make_job(make_request(sync_timestamp=None)).run()

        assert result.ok
        assert any("09:30:05" in line for line in result.logs)

    def test_invalid_request_fails(self, make_request, make_job):
        result = make_job(make_request(interpolation_seconds=0)).run()

        assert result.state == JobState.FAILED
        assert isinstance(result.error, ConfigError)
        assert result.output_path is None

    def test_missing_metadata_fails(self, make_request, ffmpeg_infos, tmp_path):
        provider = VideoMetadataProvider(info_loader=lambda path: ffmpeg_infos(creation_time=None))
        job = OverlayJob(make_request(), metadata_provider=provider, echo=False)

        result = job.run()

        assert result.state == JobState.FAILED
        assert isinstance(result.error, SourceError)

    def test_bad_anchor_fails(self, make_request, make_job):
        result = make_job(make_request(sync_timestamp="not a time")).run()

        assert isinstance(result.error, AlignmentError)

    def test_backend_failure(self, make_request, make_job):
        request = make_request()

        result = make_job(request, RecordingProcessor(fail=True)).run()

        assert result.state == JobState.FAILED
        assert isinstance(result.error, BackendError)
        assert result.error.operations
        assert not os.path.exists(request.output_path)

    def test_cancel_before_composition(self, make_request, make_job):
        request = make_request()
        processor = RecordingProcessor()
        job = make_job(request, processor)
        job.cancel()

        result = job.run()

        assert result.state == JobState.FAILED
        assert isinstance(result.error, JobCancelledError)
        assert processor.plans == []
        assert not os.path.exists(request.output_path)

    def test_localized_logs(self, make_request, make_job):
        result = make_job(make_request(lang="pt")).run()

        assert result.logs[-1] == "Processamento concluído com sucesso!"

    def test_frames_csv(self, make_request, make_job, tmp_path):
        path = tmp_path / "frames.csv"

        make_job(make_request(frames_csv=str(path))).run()

        assert len(path.read_text().strip().split("\n")) == 12

    def test_frames_csv_failure_copies_source(self, make_request, make_job, source_video, tmp_path):
        """The frame export feeds no overlay, so losing it degrades to a copy."""
        request = make_request(frames_csv=str(tmp_path / "missing-dir" / "frames.csv"))
        processor = RecordingProcessor()

        result = make_job(request, processor).run()

        assert result.ok
        assert result.fallback
        assert processor.plans == []
        assert any("Could not write the frame data CSV" in line for line in result.logs)
        with open(source_video, "rb") as src, open(request.output_path, "rb") as out:
            assert out.read() == src.read()

    def test_activity_totals_logged(self, make_request, make_job, tcx_file):
        result = make_job(make_request(track_path=tcx_file)).run()

        assert result.ok
        assert any(
            line.startswith("Activity totals from the track file: Biking 0.04 km")
            for line in result.logs
        )

    def test_prepare_is_a_dry_run(self, make_request, make_job):
        processor = RecordingProcessor()
        job = make_job(make_request(), processor)

        prepared = job.prepare()

        assert job.state == JobState.SCHEDULED
        assert len(prepared.frames) == 11
        assert prepared.frames[0].video_seconds == 0.0
        assert prepared.map_projection is not None
        assert processor.plans == []

    def test_states_only_move_forward(self, make_request, make_job):
        job = make_job(make_request())
        job.prepare()

        with pytest.raises(RuntimeError, match="Invalid transition"):
            job._advance(JobState.ALIGNED)


class TestSubmitJob:
    def test_runs_on_executor(self, make_request, source_video):
        request = make_request(channels=[])

        with ThreadPoolExecutor(max_workers=1) as executor:
            result = submit_job(request, executor).result(timeout=30)

        assert result.ok
        assert result.fallback


class TestSuggestSyncPoint:
    def test_first_point_after_start(self, gpx_file, provider):
        point = suggest_sync_point(gpx_file, "ride.mp4", metadata_provider=provider)

        assert point.timestamp == datetime(2024, 5, 1, 9, 30, 5, tzinfo=timezone.utc)
