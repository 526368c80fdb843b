"""
External binary discovery.

The transcoder and the downloader CLI are located once, at process start,
and the result is passed into the engines as a frozen Toolchain. Nothing
re-scans the filesystem per request.

Search order:
- ffmpeg: explicit setting, bundled static build (imageio-ffmpeg),
  well-known install locations, then PATH.
- yt-dlp: explicit setting, well-known install locations, then PATH.

Serverless images put binaries in layer directories that aren't on PATH,
so those locations are only searched when deployment_environment says so.
"""

import logging
import os
import shutil
from dataclasses import dataclass
from typing import Iterable, Optional

import imageio_ffmpeg

from ..config.settings import Settings

logger = logging.getLogger(__name__)


FFMPEG_LOCATIONS = (
    "/usr/bin/ffmpeg",
    "/usr/local/bin/ffmpeg",
    "/opt/homebrew/bin/ffmpeg",
)

YT_DLP_LOCATIONS = (
    "/usr/local/bin/yt-dlp",
    "/usr/bin/yt-dlp",
    "/opt/homebrew/bin/yt-dlp",
    os.path.expanduser("~/.local/bin/yt-dlp"),
)

# Layer / bundle directories used by serverless images
SERVERLESS_FFMPEG_LOCATIONS = (
    "/opt/bin/ffmpeg",
    "/var/task/bin/ffmpeg",
)

SERVERLESS_YT_DLP_LOCATIONS = (
    "/opt/bin/yt-dlp",
    "/var/task/bin/yt-dlp",
    "/tmp/yt-dlp",
)


@dataclass(frozen=True)
class Toolchain:
    """
    Resolved binary paths, shared read-only by every pipeline run.

    None means the binary was not found. Engines decide what that means
    for them; the trimmer treats it as fatal, the downloader chain just
    skips the CLI strategy.
    """
    ffmpeg_path: Optional[str]
    yt_dlp_path: Optional[str]

    @property
    def has_ffmpeg(self) -> bool:
        return self.ffmpeg_path is not None

    @property
    def has_yt_dlp(self) -> bool:
        return self.yt_dlp_path is not None


def _is_executable(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)


def _first_executable(candidates: Iterable[str]) -> Optional[str]:
    for candidate in candidates:
        if candidate and _is_executable(candidate):
            return candidate
    return None


def _bundled_ffmpeg() -> Optional[str]:
    """Static ffmpeg shipped inside the imageio-ffmpeg wheel."""
    try:
        path = imageio_ffmpeg.get_ffmpeg_exe()
    except RuntimeError as e:
        # raised when the wheel has no binary for this platform
        logger.debug("No bundled ffmpeg available", extra={"error": str(e)})
        return None
    return path if path and _is_executable(path) else None


def find_ffmpeg(override: Optional[str] = None, serverless: bool = False) -> Optional[str]:
    if override:
        if _is_executable(override):
            return override
        logger.warning("Configured ffmpeg path is not executable", extra={"path": override})

    bundled = _bundled_ffmpeg()
    if bundled:
        return bundled

    locations = FFMPEG_LOCATIONS + (SERVERLESS_FFMPEG_LOCATIONS if serverless else ())
    found = _first_executable(locations)
    if found:
        return found

    return shutil.which("ffmpeg")


def find_yt_dlp(override: Optional[str] = None, serverless: bool = False) -> Optional[str]:
    if override:
        if _is_executable(override):
            return override
        logger.warning("Configured yt-dlp path is not executable", extra={"path": override})

    locations = YT_DLP_LOCATIONS + (SERVERLESS_YT_DLP_LOCATIONS if serverless else ())
    found = _first_executable(locations)
    if found:
        return found

    return shutil.which("yt-dlp")


def resolve_toolchain(settings: Settings) -> Toolchain:
    """Locate both binaries once. Call at startup, then pass the result around."""
    toolchain = Toolchain(
        ffmpeg_path=find_ffmpeg(settings.ffmpeg_path, settings.is_serverless),
        yt_dlp_path=find_yt_dlp(settings.yt_dlp_path, settings.is_serverless),
    )

    logger.info(
        "Resolved external binaries",
        extra={
            "ffmpeg": toolchain.ffmpeg_path,
            "yt_dlp": toolchain.yt_dlp_path,
            "serverless": settings.is_serverless,
        }
    )
    if not toolchain.has_ffmpeg:
        logger.error("No ffmpeg binary found; every trim request will fail")

    return toolchain
