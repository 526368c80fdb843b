"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock modes enable local development without the storage bucket or the
indexing service.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Keys issued by the indexing service always carry this prefix.
TWELVE_LABS_KEY_PREFIX = "tlk_"

# Value shipped in the example .env; treated the same as an empty key.
TWELVE_LABS_KEY_PLACEHOLDER = "your_twelve_labs_api_key_here"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like api_keys), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Clip Pipeline API"
    api_version: str = "v1"
    api_keys: str = Field(
        default="dev-key-1,dev-key-2",
        description="Comma-separated API keys. Using a list enables key rotation without downtime."
    )

    # Deployment
    deployment_environment: Literal["local", "serverless"] = Field(
        default="local",
        description="Selects the temp directory base and enables the extra binary search paths of serverless images."
    )

    # Toolchain overrides
    ffmpeg_path: Optional[str] = Field(
        default=None,
        description="Explicit transcoder binary. Skips discovery when set."
    )
    yt_dlp_path: Optional[str] = Field(
        default=None,
        description="Explicit downloader binary. Skips discovery when set."
    )

    # Timeouts
    download_timeout_seconds: int = Field(
        default=600,
        description="Upper bound for a single downloader binary run or HTTP fetch read."
    )
    trim_timeout_seconds: int = Field(
        default=600,
        description="Upper bound for a single transcoder run."
    )

    # Primary sink (R2/S3 storage)
    r2_account_id: str = Field(
        default="",
        description="Cloudflare account ID for R2"
    )
    r2_access_key_id: str = Field(
        default="",
        description="R2 access key ID"
    )
    r2_secret_access_key: str = Field(
        default="",
        description="R2 secret access key"
    )
    r2_bucket_name: str = Field(
        default="campaign-clips",
        description="R2 bucket name for trimmed clips"
    )
    r2_endpoint_url: Optional[str] = Field(
        default=None,
        description="R2 endpoint URL. Auto-constructed from account_id if not provided."
    )
    r2_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real R2. Enables local dev without object storage."
    )
    storage_root_folder_name: str = Field(
        default="Zeus Videos",
        description="Top-level folder every campaign folder lives under."
    )

    # Secondary sink (TwelveLabs indexing)
    twelve_labs_api_key: str = Field(
        default="",
        description="Indexing service API key. Secondary delivery is skipped unless it starts with 'tlk_'."
    )
    twelve_labs_base_url: str = Field(
        default="https://api.twelvelabs.io/v1.3",
        description="Indexing service REST endpoint"
    )
    twelve_labs_index_name: str = Field(
        default="Zeus Videos",
        description="Index created when the account has none"
    )
    twelve_labs_mock_mode: bool = Field(
        default=False,
        description="Use an in-memory indexer that completes jobs immediately."
    )
    secondary_poll_interval_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Delay between indexing status checks."
    )
    secondary_poll_timeout_seconds: float = Field(
        default=30.0,
        ge=0,
        description="How long to wait for indexing before reporting 'processing'."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def api_keys_list(self) -> list[str]:
        """Parse comma-separated API keys into a list."""
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_serverless(self) -> bool:
        return self.deployment_environment == "serverless"

    @property
    def r2_endpoint(self) -> str:
        """
        Construct R2 endpoint URL from account ID.

        R2 endpoints follow the pattern: https://{account_id}.r2.cloudflarestorage.com
        """
        if self.r2_endpoint_url:
            return self.r2_endpoint_url
        return f"https://{self.r2_account_id}.r2.cloudflarestorage.com"

    @property
    def secondary_configured(self) -> bool:
        """
        Whether secondary delivery should be attempted at all.

        This is a precondition, not a connectivity check: a missing or
        malformed key means "not configured", never "configured but failed".
        """
        if self.twelve_labs_mock_mode:
            return True
        return secondary_key_is_valid(self.twelve_labs_api_key)

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields. The indexing key is never
        required because secondary delivery is optional.
        """
        missing = []

        if not self.r2_mock_mode:
            if not self.r2_account_id and not self.r2_endpoint_url:
                missing.append("R2_ACCOUNT_ID")
            if not self.r2_access_key_id:
                missing.append("R2_ACCESS_KEY_ID")
            if not self.r2_secret_access_key:
                missing.append("R2_SECRET_ACCESS_KEY")

        return missing


def secondary_key_is_valid(api_key: Optional[str]) -> bool:
    """Check the indexing key's format without any network call."""
    if not api_key:
        return False
    key = api_key.strip()
    if key == TWELVE_LABS_KEY_PLACEHOLDER:
        return False
    return key.startswith(TWELVE_LABS_KEY_PREFIX) and len(key) > len(TWELVE_LABS_KEY_PREFIX)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    This is safe because settings don't change during runtime.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
