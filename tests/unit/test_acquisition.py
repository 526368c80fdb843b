"""
Unit tests for the acquisition engine and download strategies.

The chain logic is tested with in-process fake strategies; the real
strategies are tested for what they build (options, commands) and with
their network/subprocess edges replaced. Nothing here touches the network.
"""

import asyncio
import os
import subprocess

import pytest
import requests

from src.core.pipeline.classifier import classify
from src.core.pipeline.errors import AcquisitionError
from src.core.pipeline.models import AcquisitionRequest, SourceCategory
from src.core.pipeline.workspace import TempResourceManager
from src.infrastructure.binaries import Toolchain
from src.infrastructure.download import strategies
from src.infrastructure.download.engine import AcquisitionEngine, run_chain
from src.infrastructure.download.strategies import (
    FORMAT_SELECTOR,
    DownloadStrategy,
    HttpFetchStrategy,
    StrategyFailed,
    YtDlpBinaryStrategy,
    YtDlpLibraryStrategy,
)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class WritingStrategy(DownloadStrategy):
    """Writes a payload to the destination, like a successful download."""

    def __init__(self, name: str, payload: bytes = b"video-bytes"):
        self.name = name
        self.payload = payload
        self.calls = 0

    def run(self, request):
        self.calls += 1
        with open(request.destination_path, "wb") as f:
            f.write(self.payload)


class FailingStrategy(DownloadStrategy):
    """Leaves a partial file behind and then fails."""

    def __init__(self, name: str, error: Exception):
        self.name = name
        self.error = error
        self.calls = 0

    def run(self, request):
        self.calls += 1
        with open(request.destination_path, "wb") as f:
            f.write(b"partial")
        raise self.error


class FakeResponse:
    def __init__(self, status_code=200, body=b""):
        self.status_code = status_code
        self._body = body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self._body), 4):
            yield self._body[i:i + 4]


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def get(self, url, **kwargs):
        self.requests.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response


@pytest.fixture
def request_for(tmp_path):
    def _build(url: str) -> AcquisitionRequest:
        return AcquisitionRequest(
            classification=classify(url),
            destination_path=str(tmp_path / "input.mp4"),
        )
    return _build


# ---------------------------------------------------------------------------
# Strategy Chain Tests
# ---------------------------------------------------------------------------

class TestRunChain:
    """Tests for walking a strategy chain."""

    def test_first_success_stops_the_chain(self, request_for):
        first = WritingStrategy("first")
        second = WritingStrategy("second")
        request = request_for("https://youtu.be/abc")

        result = run_chain([first, second], request)

        assert result.local_path == request.destination_path
        assert result.byte_size == len(b"video-bytes")
        assert first.calls == 1
        assert second.calls == 0

    def test_falls_through_to_next_strategy(self, request_for):
        """A failing strategy's partial file doesn't count as success."""
        failing = FailingStrategy("first", StrategyFailed("blocked"))
        working = WritingStrategy("second", payload=b"the real video")
        request = request_for("https://youtu.be/abc")

        result = run_chain([failing, working], request)

        assert result.byte_size == len(b"the real video")
        with open(result.local_path, "rb") as f:
            assert f.read() == b"the real video"

    def test_success_without_file_is_a_failure(self, request_for):
        """Exit status alone is not trusted; the file must exist and be non-empty."""
        silent = WritingStrategy("silent", payload=b"")
        working = WritingStrategy("working")

        result = run_chain([silent, working], request_for("https://youtu.be/abc"))

        assert result.byte_size > 0
        assert silent.calls == 1
        assert working.calls == 1

    def test_exhausted_chain_reports_every_attempt(self, request_for):
        request = request_for("https://youtu.be/abc")
        chain = [
            FailingStrategy("ytdlp-library", StrategyFailed("extractor broke")),
            FailingStrategy("ytdlp-binary", StrategyFailed("exit 1", exit_code=1)),
            FailingStrategy("http-fetch", RuntimeError("unexpected")),
        ]

        with pytest.raises(AcquisitionError) as exc_info:
            run_chain(chain, request)

        attempts = exc_info.value.attempts
        assert [a.strategy for a in attempts] == ["ytdlp-library", "ytdlp-binary", "http-fetch"]
        assert attempts[1].details == {"exit_code": 1}
        assert "RuntimeError" in attempts[2].error
        assert not os.path.exists(request.destination_path)

    def test_empty_result_message(self, request_for):
        with pytest.raises(AcquisitionError) as exc_info:
            run_chain([WritingStrategy("silent", payload=b"")], request_for("https://youtu.be/abc"))

        assert exc_info.value.attempts[0].error == "Strategy reported success but produced no file"


class TestAcquisitionEngine:
    """Tests for chain selection and working set integration."""

    def test_default_chains(self):
        engine = AcquisitionEngine(Toolchain(ffmpeg_path=None, yt_dlp_path=None))

        platform = ["ytdlp-library", "ytdlp-binary", "http-fetch"]
        assert [s.name for s in engine.chain_for(SourceCategory.SHORT_FORM)] == platform
        assert [s.name for s in engine.chain_for(SourceCategory.STREAMING)] == platform
        assert [s.name for s in engine.chain_for(SourceCategory.DIRECT_FILE)] == ["http-fetch"]

    def test_acquire_downloads_into_working_set(self, tmp_path):
        engine = AcquisitionEngine(
            Toolchain(None, None),
            chains={SourceCategory.STREAMING: (WritingStrategy("only"),)},
        )
        manager = TempResourceManager(str(tmp_path))

        with manager.open() as working_set:
            result = asyncio.run(engine.acquire(classify("https://youtu.be/abc"), working_set))
            assert os.path.dirname(result.local_path) == str(working_set.directory)
            assert os.path.getsize(result.local_path) == result.byte_size

        assert list(tmp_path.iterdir()) == []

    def test_total_failure_leaves_no_temp_files(self, tmp_path):
        """Every strategy fails: typed error with all attempts, nothing left on disk."""
        chain = (
            FailingStrategy("ytdlp-library", StrategyFailed("private video")),
            FailingStrategy("ytdlp-binary", StrategyFailed("private video", exit_code=1)),
            FailingStrategy("http-fetch", StrategyFailed("URL does not point at a video file")),
        )
        engine = AcquisitionEngine(Toolchain(None, None), chains={SourceCategory.SHORT_FORM: chain})
        manager = TempResourceManager(str(tmp_path))

        with pytest.raises(AcquisitionError) as exc_info:
            with manager.open() as working_set:
                asyncio.run(engine.acquire(
                    classify("https://www.tiktok.com/@creator/video/7300000000000000001"),
                    working_set,
                ))

        assert len(exc_info.value.attempts) == 3
        assert list(tmp_path.iterdir()) == []


# ---------------------------------------------------------------------------
# Strategy Tests
# ---------------------------------------------------------------------------

class TestYtDlpLibraryStrategy:

    def test_options_pin_ffmpeg_and_format(self, request_for):
        strategy = YtDlpLibraryStrategy(Toolchain(ffmpeg_path="/opt/ffmpeg", yt_dlp_path=None))
        request = request_for("https://www.youtube.com/embed/XYZ123")

        opts = strategy.build_options(request)

        assert opts["outtmpl"] == request.destination_path
        assert opts["format"] == FORMAT_SELECTOR
        assert opts["ffmpeg_location"] == "/opt/ffmpeg"
        assert opts["nocheckcertificate"] is True
        assert opts["http_headers"]["Referer"] == "https://www.youtube.com/"
        assert "User-Agent" in opts["http_headers"]

    def test_short_form_has_no_referer(self, request_for):
        strategy = YtDlpLibraryStrategy(Toolchain(None, None))
        opts = strategy.build_options(request_for("https://vm.tiktok.com/abc/"))

        assert "Referer" not in opts["http_headers"]
        assert "ffmpeg_location" not in opts

    def test_download_error_becomes_strategy_failure(self, request_for, monkeypatch):
        class ExplodingYoutubeDL:
            def __init__(self, opts):
                self.opts = opts

            def __enter__(self):
                return self

            def __exit__(self, *exc):
                return False

            def download(self, urls):
                raise strategies.DownloadError("ERROR: Video unavailable")

        monkeypatch.setattr(strategies.yt_dlp, "YoutubeDL", ExplodingYoutubeDL)

        with pytest.raises(StrategyFailed, match="Video unavailable"):
            YtDlpLibraryStrategy(Toolchain(None, None)).run(request_for("https://youtu.be/abc"))


class TestYtDlpBinaryStrategy:

    def test_command_carries_headers_and_output(self, request_for):
        strategy = YtDlpBinaryStrategy(Toolchain(ffmpeg_path="/opt/ffmpeg", yt_dlp_path="/usr/bin/yt-dlp"))
        request = request_for("https://youtu.be/abc")

        cmd = strategy.build_command(request)

        assert cmd[0] == "/usr/bin/yt-dlp"
        assert cmd[cmd.index("-f") + 1] == FORMAT_SELECTOR
        assert "Referer:https://www.youtube.com/" in cmd
        assert cmd[cmd.index("--ffmpeg-location") + 1] == "/opt/ffmpeg"
        assert cmd[-3:] == ["-o", request.destination_path, "https://www.youtube.com/watch?v=abc"]

    def test_missing_binary_fails_without_spawning(self, request_for, monkeypatch):
        def fail_if_called(*args, **kwargs):
            raise AssertionError("subprocess should not run")

        monkeypatch.setattr(strategies.subprocess, "run", fail_if_called)

        with pytest.raises(StrategyFailed, match="not found"):
            YtDlpBinaryStrategy(Toolchain(None, None)).run(request_for("https://youtu.be/abc"))

    def test_nonzero_exit_reports_code_and_stderr(self, request_for, monkeypatch):
        def fake_run(cmd, **kwargs):
            return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="ERROR: Unsupported URL")

        monkeypatch.setattr(strategies.subprocess, "run", fake_run)
        strategy = YtDlpBinaryStrategy(Toolchain(None, "/usr/bin/yt-dlp"))

        with pytest.raises(StrategyFailed, match="Unsupported URL") as exc_info:
            strategy.run(request_for("https://youtu.be/abc"))

        assert exc_info.value.details == {"exit_code": 1}


class TestHttpFetchStrategy:

    def test_refuses_urls_that_are_not_video_files(self, request_for):
        """A watch page would 'download' fine and leave HTML behind."""
        session = FakeSession(FakeResponse(body=b"<html>"))

        with pytest.raises(StrategyFailed, match="does not point at a video file"):
            HttpFetchStrategy(session=session).run(request_for("https://youtu.be/abc"))

        assert session.requests == []

    def test_streams_body_to_destination(self, request_for):
        body = b"0123456789abcdef" * 10
        session = FakeSession(FakeResponse(body=body))
        request = request_for("https://cdn.example.com/promo.mp4?sig=1")

        HttpFetchStrategy(session=session).run(request)

        with open(request.destination_path, "rb") as f:
            assert f.read() == body
        url, kwargs = session.requests[0]
        assert url == "https://cdn.example.com/promo.mp4?sig=1"
        assert kwargs["stream"] is True
        assert "User-Agent" in kwargs["headers"]

    def test_http_error_reports_status(self, request_for):
        session = FakeSession(FakeResponse(status_code=404))

        with pytest.raises(StrategyFailed) as exc_info:
            HttpFetchStrategy(session=session).run(request_for("https://cdn.example.com/gone.mp4"))

        assert exc_info.value.details == {"status_code": 404}

    def test_network_error_becomes_strategy_failure(self, request_for):
        session = FakeSession(error=requests.exceptions.ConnectionError("connection refused"))

        with pytest.raises(StrategyFailed, match="Network error"):
            HttpFetchStrategy(session=session).run(request_for("https://cdn.example.com/a.mp4"))
