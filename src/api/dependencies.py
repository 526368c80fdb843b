"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be mocked for testing
- Configuration is centralized

The toolchain (resolved binary paths) is computed once per process and
shared read-only by every request.
"""

import logging
from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.pipeline.delivery import DeliveryOrchestrator, PrimarySink, SecondarySink
from ..core.pipeline.processor import VideoPipeline
from ..core.pipeline.workspace import TempResourceManager, resolve_temp_base
from ..infrastructure.binaries import Toolchain, resolve_toolchain
from ..infrastructure.download.engine import AcquisitionEngine
from ..infrastructure.indexing.client import IndexingConfig, create_secondary_sink
from ..infrastructure.storage.client import StorageConfig, create_primary_sink
from ..infrastructure.video.trimmer import FFmpegTrimmer

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Global mock instances (shared across requests for testing)
_mock_primary_sink = None
_mock_secondary_sink = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate API key from request header.

    Raises 403 if key is invalid or missing.
    """
    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8] if api_key else ""}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


# ---------------------------------------------------------------------------
# Process-wide configuration
# ---------------------------------------------------------------------------

@lru_cache()
def get_toolchain() -> Toolchain:
    """
    Resolve binary paths once per process.

    Called from the app lifespan so discovery happens at startup rather
    than on the first request. For tests, call get_toolchain.cache_clear().
    """
    return resolve_toolchain(get_settings())


def get_resource_manager(
    settings: Annotated[Settings, Depends(get_settings)],
) -> TempResourceManager:
    return TempResourceManager(resolve_temp_base(settings.deployment_environment))


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------

def get_primary_sink(
    settings: Annotated[Settings, Depends(get_settings)],
) -> PrimarySink:
    """
    Provide the primary sink.

    In mock mode, we reuse the same sink across requests so that uploaded
    clips persist during the testing session.
    """
    global _mock_primary_sink

    if settings.r2_mock_mode:
        if _mock_primary_sink is None:
            _mock_primary_sink = create_primary_sink(mock_mode=True)
            logger.info("Created shared mock primary sink for session")
        return _mock_primary_sink

    config = StorageConfig(
        access_key_id=settings.r2_access_key_id,
        secret_access_key=settings.r2_secret_access_key,
        bucket_name=settings.r2_bucket_name,
        endpoint_url=settings.r2_endpoint,
        root_folder_name=settings.storage_root_folder_name,
    )
    return create_primary_sink(config=config)


def get_secondary_sink(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Optional[SecondarySink]:
    """
    Provide the secondary sink, or None when no key is set at all.

    A malformed key still yields a client; the orchestrator's precondition
    check skips it without any network call.
    """
    global _mock_secondary_sink

    if settings.twelve_labs_mock_mode:
        if _mock_secondary_sink is None:
            _mock_secondary_sink = create_secondary_sink(mock_mode=True)
            logger.info("Created shared mock secondary sink for session")
        return _mock_secondary_sink

    if not settings.twelve_labs_api_key:
        return None

    return _twelve_labs_client(
        settings.twelve_labs_api_key,
        settings.twelve_labs_base_url,
        settings.twelve_labs_index_name,
    )


@lru_cache()
def _twelve_labs_client(api_key: str, base_url: str, index_name: str) -> Optional[SecondarySink]:
    """
    One indexing client per key, shared across requests.

    The client remembers the index it found or created, so reuse saves an
    index listing on every submit.
    """
    config = IndexingConfig(api_key=api_key, base_url=base_url, index_name=index_name)
    return create_secondary_sink(config=config)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def get_video_pipeline(
    settings: Annotated[Settings, Depends(get_settings)],
    toolchain: Annotated[Toolchain, Depends(get_toolchain)],
    resources: Annotated[TempResourceManager, Depends(get_resource_manager)],
    primary_sink: Annotated[PrimarySink, Depends(get_primary_sink)],
    secondary_sink: Annotated[Optional[SecondarySink], Depends(get_secondary_sink)],
) -> VideoPipeline:
    """Assemble the pipeline from the shared toolchain and per-request sinks."""
    delivery = DeliveryOrchestrator(
        primary_sink=primary_sink,
        secondary_sink=secondary_sink,
        poll_interval_seconds=settings.secondary_poll_interval_seconds,
        poll_timeout_seconds=settings.secondary_poll_timeout_seconds,
    )

    return VideoPipeline(
        resources=resources,
        acquisition=AcquisitionEngine(
            toolchain,
            download_timeout_seconds=settings.download_timeout_seconds,
        ),
        trimmer=FFmpegTrimmer(
            toolchain.ffmpeg_path,
            timeout_seconds=settings.trim_timeout_seconds,
        ),
        delivery=delivery,
    )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
ToolchainDep = Annotated[Toolchain, Depends(get_toolchain)]
ResourceManagerDep = Annotated[TempResourceManager, Depends(get_resource_manager)]
VideoPipelineDep = Annotated[VideoPipeline, Depends(get_video_pipeline)]
