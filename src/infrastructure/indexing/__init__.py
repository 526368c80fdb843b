"""
Video indexing integration (the optional secondary sink).
"""

from .client import (
    IndexingConfig,
    IndexingError,
    MockIndexClient,
    TwelveLabsIndexClient,
    create_secondary_sink,
    map_task_status,
)

__all__ = [
    "IndexingConfig",
    "IndexingError",
    "MockIndexClient",
    "TwelveLabsIndexClient",
    "create_secondary_sink",
    "map_task_status",
]
