"""
Health check endpoints.

We provide two endpoints:
- /health: Basic liveness check (is the process running?)
- /health/ready: Readiness check (can we actually process a clip?)

Readiness covers the things a run needs before it touches the network:
storage configuration, a writable temp directory and a transcoder.
"""

import logging
from typing import Any

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from ... import __version__
from ...core.pipeline.errors import ConfigurationError
from ..dependencies import ResourceManagerDep, SettingsDep, ToolchainDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """
    Health check response.

    Standardized format makes it easy for monitoring tools to parse.
    """
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response with details."""
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check dependencies.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        details={
            "deployment_environment": settings.deployment_environment,
            "mock_mode": {
                "r2": settings.r2_mock_mode,
                "twelve_labs": settings.twelve_labs_mock_mode,
            },
            "secondary_configured": settings.secondary_configured,
        }
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if the service can process clips, 503 otherwise.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(
    response: Response,
    settings: SettingsDep,
    toolchain: ToolchainDep,
    resources: ResourceManagerDep,
) -> ReadinessResponse:
    """
    Readiness check - can we serve traffic?

    The downloader binary is reported but never fails readiness: the
    library strategy works without it.
    """
    checks: list[ReadinessCheck] = []

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        checks.append(ReadinessCheck(
            name="configuration",
            status="error",
            error=f"Missing required fields: {', '.join(missing_fields)}"
        ))
    else:
        checks.append(ReadinessCheck(name="configuration", status="ok"))

    try:
        resources.verify_writable()
        checks.append(ReadinessCheck(name="temp_directory", status="ok"))
    except ConfigurationError as e:
        checks.append(ReadinessCheck(name="temp_directory", status="error", error=e.message))

    if toolchain.has_ffmpeg:
        checks.append(ReadinessCheck(name="ffmpeg", status="ok"))
    else:
        checks.append(ReadinessCheck(name="ffmpeg", status="error", error="ffmpeg binary not found"))

    all_ok = all(check.status == "ok" for check in checks)

    checks.append(ReadinessCheck(
        name="yt_dlp_binary",
        status="ok",
        error=None if toolchain.has_yt_dlp else "not found; CLI fallback disabled",
    ))

    if not all_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Readiness check failed",
            extra={
                "checks": [
                    {"name": c.name, "status": c.status, "error": c.error}
                    for c in checks
                ]
            }
        )

    return ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=__version__,
        checks=checks,
    )
