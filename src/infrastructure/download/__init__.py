"""
Video download infrastructure.

Ordered download strategies (yt-dlp library, yt-dlp CLI, plain HTTP)
and the engine that chains them per source category.
"""

from .engine import AcquisitionEngine, run_chain
from .strategies import (
    DownloadStrategy,
    HttpFetchStrategy,
    StrategyFailed,
    YtDlpBinaryStrategy,
    YtDlpLibraryStrategy,
)

__all__ = [
    "AcquisitionEngine",
    "run_chain",
    "DownloadStrategy",
    "HttpFetchStrategy",
    "StrategyFailed",
    "YtDlpBinaryStrategy",
    "YtDlpLibraryStrategy",
]
