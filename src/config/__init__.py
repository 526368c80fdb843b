"""
Application configuration using Pydantic settings.

Configuration comes from environment variables with sensible defaults.
Supports mock modes for local development.
"""

from .settings import Settings, get_settings, secondary_key_is_valid

__all__ = ["Settings", "get_settings", "secondary_key_is_valid"]
