"""
Video processing infrastructure.

Trims downloaded sources with FFmpeg into uniformly encoded MP4 clips.
"""

from .trimmer import FFmpegTrimmer, parse_duration

__all__ = [
    "FFmpegTrimmer",
    "parse_duration",
]
