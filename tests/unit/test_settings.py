"""
Unit tests for configuration and binary discovery.
"""

import os

import pytest
from pydantic import ValidationError

from src.config.settings import Settings, secondary_key_is_valid
from src.infrastructure.binaries import Toolchain, find_yt_dlp, resolve_toolchain


class TestSecondaryKey:
    """The key's format is the only precondition for secondary delivery."""

    def test_prefixed_key_is_valid(self):
        assert secondary_key_is_valid("tlk_ABC123") is True

    @pytest.mark.parametrize("key", [
        None,
        "",
        "   ",
        "tlk_",
        "sk-ABC123",
        "your_twelve_labs_api_key_here",
    ])
    def test_invalid_keys(self, key):
        assert secondary_key_is_valid(key) is False


class TestSettings:

    def test_api_keys_are_split(self):
        settings = Settings(api_keys="one, two,,three")
        assert settings.api_keys_list == ["one", "two", "three"]

    def test_r2_endpoint_from_account_id(self):
        settings = Settings(r2_account_id="abc123", r2_endpoint_url=None)
        assert settings.r2_endpoint == "https://abc123.r2.cloudflarestorage.com"

    def test_missing_storage_credentials_are_reported(self):
        settings = Settings(
            r2_mock_mode=False,
            r2_account_id="",
            r2_endpoint_url=None,
            r2_access_key_id="",
            r2_secret_access_key="",
        )
        assert settings.validate_required_fields() == [
            "R2_ACCOUNT_ID", "R2_ACCESS_KEY_ID", "R2_SECRET_ACCESS_KEY",
        ]

    def test_mock_mode_needs_no_credentials(self):
        assert Settings(r2_mock_mode=True).validate_required_fields() == []

    def test_secondary_configured_follows_key(self):
        assert Settings(twelve_labs_api_key="tlk_x", twelve_labs_mock_mode=False).secondary_configured
        assert not Settings(twelve_labs_api_key="bad", twelve_labs_mock_mode=False).secondary_configured

    def test_poll_interval_must_be_positive(self):
        """A zero interval would hammer the indexing API until the timeout."""
        with pytest.raises(ValidationError):
            Settings(secondary_poll_interval_seconds=0)

    def test_poll_timeout_cannot_be_negative(self):
        with pytest.raises(ValidationError):
            Settings(secondary_poll_timeout_seconds=-1)

    def test_serverless_flag(self):
        assert Settings(deployment_environment="serverless").is_serverless
        assert not Settings(deployment_environment="local").is_serverless


class TestBinaryDiscovery:

    def test_explicit_path_wins(self, tmp_path):
        binary = tmp_path / "yt-dlp"
        binary.write_text("#!/bin/sh\n")
        os.chmod(binary, 0o755)

        assert find_yt_dlp(str(binary)) == str(binary)

    def test_toolchain_flags(self):
        toolchain = Toolchain(ffmpeg_path="/usr/bin/ffmpeg", yt_dlp_path=None)
        assert toolchain.has_ffmpeg
        assert not toolchain.has_yt_dlp

    def test_resolve_uses_settings_overrides(self, tmp_path):
        ffmpeg = tmp_path / "ffmpeg"
        ffmpeg.write_text("#!/bin/sh\n")
        os.chmod(ffmpeg, 0o755)

        toolchain = resolve_toolchain(Settings(ffmpeg_path=str(ffmpeg)))

        assert toolchain.ffmpeg_path == str(ffmpeg)
