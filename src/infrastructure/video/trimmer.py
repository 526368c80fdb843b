"""
Video trimming using FFmpeg.

Cuts one time window out of a downloaded source and re-encodes it to
H.264 video + AAC audio in an MP4 container, whatever the source used.
Every clip that reaches the sinks therefore has the same predictable
format.

Why re-encode instead of stream copy:
- Stream copy can only cut on keyframes, so clips would start early
- Sources arrive as VP9/AV1/HEVC depending on platform; not every
  downstream consumer plays those
- The output duration has to match the requested window

The ffmpeg path is resolved once at startup (see binaries.py). If it
wasn't found, every call fails immediately instead of trying to spawn a
binary that doesn't exist.
"""

import asyncio
import logging
import os
import re
import subprocess
from typing import Optional

from ...core.pipeline.errors import TrimError, TrimErrorKind
from ...core.pipeline.models import TrimSpec

logger = logging.getLogger(__name__)


VIDEO_CODEC = "libx264"
AUDIO_CODEC = "aac"

_DURATION_PATTERN = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")


def _format_seconds(value: float) -> str:
    return f"{value:.3f}"


def _tail(text: Optional[str], limit: int = 500) -> str:
    text = (text or "").strip()
    return text[-limit:] if len(text) > limit else text


def parse_duration(ffmpeg_output: str) -> Optional[float]:
    """
    Pull the container duration out of ffmpeg's banner.

    Returns None when ffmpeg reports "Duration: N/A" (live streams, some
    fragmented files).
    """
    match = _DURATION_PATTERN.search(ffmpeg_output or "")
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


class FFmpegTrimmer:
    """
    Trims videos with a single ffmpeg invocation.

    Each call blocks a worker thread; the awaiting coroutine resumes
    exactly once, either with the output path or with a TrimError.
    """

    def __init__(self, ffmpeg_path: Optional[str], timeout_seconds: int = 600) -> None:
        """
        Args:
            ffmpeg_path: Resolved ffmpeg binary, or None if discovery failed
            timeout_seconds: Upper bound for one transcoder run
        """
        self._ffmpeg = ffmpeg_path
        self._timeout = timeout_seconds

        if ffmpeg_path is None:
            logger.warning("FFmpeg trimmer created without a binary; trims will fail")
        else:
            logger.debug("FFmpeg trimmer initialized", extra={"ffmpeg": ffmpeg_path})

    @property
    def available(self) -> bool:
        return self._ffmpeg is not None

    def _require_binary(self) -> str:
        if self._ffmpeg is None:
            raise TrimError(
                "FFmpeg not found. Install ffmpeg or the imageio-ffmpeg package.",
                kind=TrimErrorKind.BINARY_NOT_FOUND,
            )
        return self._ffmpeg

    def build_command(self, spec: TrimSpec) -> list[str]:
        """
        Build the ffmpeg command line for a trim.

        -ss before -i seeks on the input (fast, and accurate because we
        re-encode); -t caps the output at exactly the window length.
        """
        return [
            self._require_binary(),
            "-hide_banner",
            "-loglevel", "error",
            "-y",
            "-ss", _format_seconds(spec.start_time),
            "-i", spec.input_path,
            "-t", _format_seconds(spec.duration),
            "-c:v", VIDEO_CODEC,
            "-preset", "veryfast",
            "-pix_fmt", "yuv420p",
            "-c:a", AUDIO_CODEC,
            "-movflags", "+faststart",
            spec.output_path,
        ]

    async def trim(self, spec: TrimSpec) -> str:
        """
        Produce spec.output_path containing [start_time, end_time) of the input.

        Raises TrimError on a missing binary, a transcoder failure, a
        timeout, or an empty output file.
        """
        cmd = self.build_command(spec)

        logger.info(
            "Trimming video",
            extra={
                "start": spec.start_time,
                "end": spec.end_time,
                "duration": spec.duration,
            }
        )

        try:
            result = await asyncio.to_thread(
                subprocess.run,
                cmd,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise TrimError(f"FFmpeg timed out after {self._timeout}s") from e
        except OSError as e:
            raise TrimError(f"FFmpeg could not be started: {e}") from e

        if result.returncode != 0:
            raise TrimError(f"FFmpeg failed (code {result.returncode}): {_tail(result.stderr)}")

        if not os.path.exists(spec.output_path) or os.path.getsize(spec.output_path) == 0:
            raise TrimError("FFmpeg finished but produced no output")

        logger.info(
            "Video trimming completed",
            extra={"size_bytes": os.path.getsize(spec.output_path)}
        )
        return spec.output_path

    async def probe_duration(self, path: str) -> Optional[float]:
        """
        Read a file's duration in seconds.

        Uses `ffmpeg -i` rather than ffprobe because the bundled static
        build ships without ffprobe. ffmpeg exits non-zero here (no output
        file given), so only the banner matters.
        """
        cmd = [self._require_binary(), "-hide_banner", "-i", path]

        try:
            result = await asyncio.to_thread(
                subprocess.run,
                cmd,
                capture_output=True,
                text=True,
                timeout=30,
            )
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.warning("Duration probe failed", extra={"path": path, "error": str(e)})
            return None

        return parse_duration(result.stderr)
