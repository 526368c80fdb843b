"""
Download strategies.

Each strategy is one way of turning a URL into a local file. They share a
tiny interface (a name and a blocking run()) so the engine can chain them
without knowing how any of them work:

- YtDlpLibraryStrategy: yt-dlp as a Python library
- YtDlpBinaryStrategy: the yt-dlp CLI in a subprocess, for when the
  library route breaks (e.g. an extractor bug fixed in a newer binary)
- HttpFetchStrategy: plain streaming GET, only for URLs that name a
  video file directly

run() raises StrategyFailed (or anything else) on failure. Success is
verified by the engine, not trusted from the strategy.
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from typing import Any, Optional

import requests
import yt_dlp
from yt_dlp.utils import DownloadError

from ...core.pipeline.classifier import has_video_extension
from ...core.pipeline.models import AcquisitionRequest, SourceCategory
from ..binaries import Toolchain

logger = logging.getLogger(__name__)

# yt-dlp logs extractor chatter at INFO; we only want real problems
logging.getLogger("yt_dlp").setLevel(logging.WARNING)


FORMAT_SELECTOR = "best[ext=mp4]/best"

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

STREAMING_REFERER = "https://www.youtube.com/"

HTTP_CHUNK_SIZE = 1024 * 1024
HTTP_CONNECT_TIMEOUT = 10


class StrategyFailed(Exception):
    """A strategy ran and did not produce the video."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.details = details


def request_headers(category: SourceCategory) -> dict[str, str]:
    """Headers that keep platforms from treating us as a bot."""
    headers = {"User-Agent": BROWSER_USER_AGENT}
    if category == SourceCategory.STREAMING:
        headers["Referer"] = STREAMING_REFERER
    return headers


class DownloadStrategy(ABC):
    """
    Base class for download strategies.

    Strategies are stateless apart from configuration, so one instance
    serves every request.
    """

    name: str = "strategy"

    @abstractmethod
    def run(self, request: AcquisitionRequest) -> None:
        """Download request.url to request.destination_path or raise."""
        ...


class YtDlpLibraryStrategy(DownloadStrategy):
    """
    Download through the yt-dlp Python API.

    The transcoder path is pinned from the startup toolchain so yt-dlp's
    post-processing uses the same ffmpeg we trim with, instead of whatever
    it finds on its own.
    """

    name = "ytdlp-library"

    def __init__(self, toolchain: Toolchain, socket_timeout: int = 30) -> None:
        self._toolchain = toolchain
        self._socket_timeout = socket_timeout

    def build_options(self, request: AcquisitionRequest) -> dict[str, Any]:
        opts: dict[str, Any] = {
            "outtmpl": request.destination_path,
            "format": FORMAT_SELECTOR,
            "nocheckcertificate": True,
            "noplaylist": True,
            "overwrites": True,
            "quiet": True,
            "no_warnings": True,
            "noprogress": True,
            "socket_timeout": self._socket_timeout,
            "http_headers": request_headers(request.classification.category),
        }
        if self._toolchain.ffmpeg_path:
            opts["ffmpeg_location"] = self._toolchain.ffmpeg_path
        return opts

    def run(self, request: AcquisitionRequest) -> None:
        opts = self.build_options(request)
        try:
            with yt_dlp.YoutubeDL(opts) as ydl:
                retcode = ydl.download([request.url])
        except DownloadError as e:
            raise StrategyFailed(f"yt-dlp download error: {e}") from e

        if retcode:
            raise StrategyFailed(f"yt-dlp reported failure (code {retcode})", exit_code=retcode)


class YtDlpBinaryStrategy(DownloadStrategy):
    """Shell out to the yt-dlp CLI found at startup."""

    name = "ytdlp-binary"

    def __init__(self, toolchain: Toolchain, timeout_seconds: int = 600) -> None:
        self._toolchain = toolchain
        self._timeout = timeout_seconds

    def build_command(self, request: AcquisitionRequest) -> list[str]:
        cmd = [
            self._toolchain.yt_dlp_path,
            "-f", FORMAT_SELECTOR,
            "--no-check-certificate",
            "--no-warnings",
            "--no-playlist",
            "--force-overwrites",
            "--no-progress",
        ]
        for header, value in request_headers(request.classification.category).items():
            cmd.extend(["--add-header", f"{header}:{value}"])
        if self._toolchain.ffmpeg_path:
            cmd.extend(["--ffmpeg-location", self._toolchain.ffmpeg_path])
        cmd.extend(["-o", request.destination_path, request.url])
        return cmd

    def run(self, request: AcquisitionRequest) -> None:
        if not self._toolchain.has_yt_dlp:
            raise StrategyFailed("yt-dlp binary not found on this host")

        try:
            result = subprocess.run(
                self.build_command(request),
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise StrategyFailed(f"yt-dlp timed out after {self._timeout}s") from e
        except OSError as e:
            raise StrategyFailed(f"yt-dlp could not be started: {e}") from e

        if result.returncode != 0:
            raise StrategyFailed(
                f"yt-dlp exited with code {result.returncode}: {_tail(result.stderr)}",
                exit_code=result.returncode,
            )


class HttpFetchStrategy(DownloadStrategy):
    """
    Stream a direct video URL to disk.

    Refuses URLs that don't end in a video extension: fetching a watch
    page would "succeed" and leave HTML where the video should be.
    """

    name = "http-fetch"

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        read_timeout: int = 600,
    ) -> None:
        self._session = session or requests.Session()
        self._read_timeout = read_timeout

    def run(self, request: AcquisitionRequest) -> None:
        if not has_video_extension(request.url):
            raise StrategyFailed("URL does not point at a video file")

        try:
            with self._session.get(
                request.url,
                stream=True,
                timeout=(HTTP_CONNECT_TIMEOUT, self._read_timeout),
                headers={"User-Agent": BROWSER_USER_AGENT},
            ) as response:
                response.raise_for_status()
                with open(request.destination_path, "wb") as f:
                    for chunk in response.iter_content(chunk_size=HTTP_CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise StrategyFailed(f"HTTP error fetching video: {e}", status_code=status) from e
        except requests.exceptions.RequestException as e:
            raise StrategyFailed(f"Network error fetching video: {e}") from e


def _tail(text: Optional[str], limit: int = 500) -> str:
    text = (text or "").strip()
    return text[-limit:] if len(text) > limit else text
