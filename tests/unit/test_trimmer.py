"""
Unit tests for the FFmpeg trimmer.

Command building and error mapping are tested without a binary. The
end-to-end test at the bottom generates a synthetic video with whatever
ffmpeg the host has (the imageio-ffmpeg build counts) and is skipped when
there is none.
"""

import asyncio
import subprocess

import pytest

from src.core.pipeline.errors import TrimError, TrimErrorKind
from src.core.pipeline.models import TrimSpec
from src.infrastructure.binaries import find_ffmpeg
from src.infrastructure.video import trimmer as trimmer_module
from src.infrastructure.video.trimmer import FFmpegTrimmer, parse_duration


def make_spec(tmp_path, start=5.0, end=15.0) -> TrimSpec:
    return TrimSpec(
        start_time=start,
        end_time=end,
        input_path=str(tmp_path / "input.mp4"),
        output_path=str(tmp_path / "output.mp4"),
    )


class TestParseDuration:

    def test_parses_banner_duration(self):
        banner = "  Duration: 00:01:05.50, start: 0.000000, bitrate: 1205 kb/s"
        assert parse_duration(banner) == pytest.approx(65.5)

    def test_parses_hours(self):
        assert parse_duration("Duration: 01:00:00.00,") == pytest.approx(3600)

    def test_unknown_duration_is_none(self):
        assert parse_duration("Duration: N/A, bitrate: N/A") is None
        assert parse_duration("") is None


class TestCommand:
    """Tests for the ffmpeg command line."""

    def test_command_seeks_input_and_sets_duration(self, tmp_path):
        spec = make_spec(tmp_path)
        cmd = FFmpegTrimmer("/usr/bin/ffmpeg").build_command(spec)

        assert cmd[0] == "/usr/bin/ffmpeg"
        assert cmd.index("-ss") < cmd.index("-i")
        assert cmd[cmd.index("-ss") + 1] == "5.000"
        assert cmd[cmd.index("-t") + 1] == "10.000"
        assert cmd[cmd.index("-i") + 1] == spec.input_path
        assert cmd[-1] == spec.output_path

    def test_command_reencodes_to_h264_aac(self, tmp_path):
        cmd = FFmpegTrimmer("/usr/bin/ffmpeg").build_command(make_spec(tmp_path))

        assert cmd[cmd.index("-c:v") + 1] == "libx264"
        assert cmd[cmd.index("-c:a") + 1] == "aac"


class TestFailures:

    def test_missing_binary_is_reported_as_such(self, tmp_path):
        trimmer = FFmpegTrimmer(None)

        assert trimmer.available is False
        with pytest.raises(TrimError) as exc_info:
            asyncio.run(trimmer.trim(make_spec(tmp_path)))

        assert exc_info.value.kind == TrimErrorKind.BINARY_NOT_FOUND

    def test_transcoder_failure_carries_stderr(self, tmp_path, monkeypatch):
        def fake_run(cmd, **kwargs):
            return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="Invalid data found")

        monkeypatch.setattr(trimmer_module.subprocess, "run", fake_run)

        with pytest.raises(TrimError, match="Invalid data found") as exc_info:
            asyncio.run(FFmpegTrimmer("/usr/bin/ffmpeg").trim(make_spec(tmp_path)))

        assert exc_info.value.kind == TrimErrorKind.TRANSCODER_FAULT

    def test_zero_exit_without_output_is_a_failure(self, tmp_path, monkeypatch):
        def fake_run(cmd, **kwargs):
            return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

        monkeypatch.setattr(trimmer_module.subprocess, "run", fake_run)

        with pytest.raises(TrimError, match="no output"):
            asyncio.run(FFmpegTrimmer("/usr/bin/ffmpeg").trim(make_spec(tmp_path)))

    def test_timeout_is_a_transcoder_fault(self, tmp_path, monkeypatch):
        def fake_run(cmd, **kwargs):
            raise subprocess.TimeoutExpired(cmd, kwargs.get("timeout"))

        monkeypatch.setattr(trimmer_module.subprocess, "run", fake_run)

        with pytest.raises(TrimError, match="timed out"):
            asyncio.run(FFmpegTrimmer("/usr/bin/ffmpeg", timeout_seconds=1).trim(make_spec(tmp_path)))


# ---------------------------------------------------------------------------
# End-to-end with a real binary
# ---------------------------------------------------------------------------

@pytest.fixture(scope="module")
def ffmpeg_path():
    path = find_ffmpeg()
    if path is None:
        pytest.skip("no ffmpeg binary available")
    return path


@pytest.fixture
def source_video(tmp_path, ffmpeg_path):
    """A 20 second test pattern with a tone."""
    path = tmp_path / "input.mp4"
    result = subprocess.run(
        [
            ffmpeg_path, "-hide_banner", "-loglevel", "error", "-y",
            "-f", "lavfi", "-i", "testsrc=duration=20:size=320x240:rate=25",
            "-f", "lavfi", "-i", "sine=frequency=440:duration=20",
            "-c:v", "libx264", "-pix_fmt", "yuv420p",
            "-c:a", "aac", "-shortest",
            str(path),
        ],
        capture_output=True,
        text=True,
    )
    if result.returncode != 0:
        pytest.skip(f"ffmpeg cannot synthesize test media: {result.stderr[-200:]}")
    return path


class TestRealTrim:

    def test_trimmed_clip_has_window_duration(self, tmp_path, ffmpeg_path, source_video):
        trimmer = FFmpegTrimmer(ffmpeg_path)
        spec = make_spec(tmp_path, start=5, end=15)

        output = asyncio.run(trimmer.trim(spec))

        assert output == spec.output_path
        assert asyncio.run(trimmer.probe_duration(str(source_video))) == pytest.approx(20, abs=0.3)
        assert asyncio.run(trimmer.probe_duration(output)) == pytest.approx(10, abs=0.3)
