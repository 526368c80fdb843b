"""
Acquisition engine: classified URL in, local video file out.

Each source category has an ordered strategy chain. run_chain() is the one
place that walks a chain: it tries each strategy, checks that a non-empty
file really exists afterwards, and collects every failure so the final
error shows the whole chain rather than just the last message.
"""

import asyncio
import logging
import os
from typing import Optional, Sequence

from ...core.pipeline.errors import AcquisitionError
from ...core.pipeline.models import (
    AcquisitionRequest,
    AcquisitionResult,
    SourceCategory,
    SourceClassification,
    StrategyAttempt,
)
from ...core.pipeline.workspace import WorkingSet
from ..binaries import Toolchain
from .strategies import (
    DownloadStrategy,
    HttpFetchStrategy,
    StrategyFailed,
    YtDlpBinaryStrategy,
    YtDlpLibraryStrategy,
)

logger = logging.getLogger(__name__)


def _discard(path: str) -> None:
    """Remove a partial download so the next strategy starts clean."""
    for candidate in (path, f"{path}.part", f"{path}.ytdl"):
        try:
            os.unlink(candidate)
        except FileNotFoundError:
            pass


def _verified_size(path: str) -> int:
    try:
        return os.path.getsize(path)
    except OSError:
        return 0


def run_chain(
    strategies: Sequence[DownloadStrategy],
    request: AcquisitionRequest,
) -> AcquisitionResult:
    """
    Try strategies in order; first one that leaves a non-empty file wins.

    Raises AcquisitionError listing every attempt if none do.
    """
    attempts: list[StrategyAttempt] = []

    for strategy in strategies:
        _discard(request.destination_path)

        try:
            strategy.run(request)
        except StrategyFailed as e:
            attempts.append(StrategyAttempt(strategy.name, str(e), dict(e.details)))
        except Exception as e:
            # Library bugs surface as arbitrary exceptions; they still just
            # mean "this strategy didn't work"
            attempts.append(StrategyAttempt(strategy.name, f"{type(e).__name__}: {e}"))
        else:
            size = _verified_size(request.destination_path)
            if size > 0:
                logger.info(
                    "Video acquired",
                    extra={
                        "strategy": strategy.name,
                        "byte_size": size,
                        "failed_attempts": len(attempts),
                    }
                )
                return AcquisitionResult(local_path=request.destination_path, byte_size=size)
            attempts.append(StrategyAttempt(
                strategy.name,
                "Strategy reported success but produced no file",
            ))

        logger.warning(
            "Download strategy failed",
            extra={
                "strategy": strategy.name,
                "category": request.classification.category.value,
                "error": attempts[-1].error,
            }
        )
        _discard(request.destination_path)

    raise AcquisitionError(attempts)


class AcquisitionEngine:
    """
    Downloads the full source video for a classification.

    Platform URLs go through yt-dlp (library, then CLI), with a raw fetch
    as the last resort; direct file URLs only ever use the raw fetch.
    """

    def __init__(
        self,
        toolchain: Toolchain,
        download_timeout_seconds: int = 600,
        chains: Optional[dict[SourceCategory, Sequence[DownloadStrategy]]] = None,
    ) -> None:
        if chains is None:
            library = YtDlpLibraryStrategy(toolchain)
            binary = YtDlpBinaryStrategy(toolchain, timeout_seconds=download_timeout_seconds)
            fetch = HttpFetchStrategy(read_timeout=download_timeout_seconds)
            chains = {
                SourceCategory.SHORT_FORM: (library, binary, fetch),
                SourceCategory.STREAMING: (library, binary, fetch),
                SourceCategory.DIRECT_FILE: (fetch,),
            }
        self._chains = chains

    def chain_for(self, category: SourceCategory) -> Sequence[DownloadStrategy]:
        return self._chains[category]

    async def acquire(
        self,
        classification: SourceClassification,
        working_set: WorkingSet,
    ) -> AcquisitionResult:
        """
        Download the video into the working set.

        The download blocks in a worker thread; the calling coroutine is
        suspended until the whole chain finishes.
        """
        request = AcquisitionRequest(
            classification=classification,
            destination_path=working_set.allocate("input"),
        )
        strategies = self.chain_for(classification.category)

        logger.info(
            "Acquiring video",
            extra={
                "category": classification.category.value,
                "url": classification.canonical_url,
                "strategies": [s.name for s in strategies],
            }
        )

        return await asyncio.to_thread(run_chain, strategies, request)
