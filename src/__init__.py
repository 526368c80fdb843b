"""
Clip Pipeline - download, trim and deliver campaign video clips.

This package contains the complete application:
- core: Framework-agnostic pipeline logic
- infrastructure: Downloaders, the transcoder and storage/indexing clients
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
