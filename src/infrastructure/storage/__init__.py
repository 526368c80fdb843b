"""
Object storage integration for trimmed clips (the primary sink).

Supports R2 (Cloudflare) and S3 (AWS) via S3-compatible API.
Includes mock mode for local development without credentials.
"""

from .client import (
    MockPrimarySink,
    R2PrimarySink,
    StorageConfig,
    StorageError,
    create_primary_sink,
)

__all__ = [
    "MockPrimarySink",
    "R2PrimarySink",
    "StorageConfig",
    "StorageError",
    "create_primary_sink",
]
