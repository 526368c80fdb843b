"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order
- Can create multiple app instances if needed (e.g., for testing)

For local development:
    uvicorn src.main:app --reload

For production:
    gunicorn src.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.dependencies import get_toolchain
from .api.routes import health, video
from .config.settings import get_settings

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=get_settings().log_level.upper(),
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Binary discovery runs here, once, so every request sees the same
    resolved toolchain and a missing ffmpeg shows up in the startup log
    rather than on the first clip.
    """
    # Startup
    settings = get_settings()
    toolchain = get_toolchain()

    logger.info(
        "Clip pipeline API starting",
        extra={
            "version": settings.api_version,
            "deployment_environment": settings.deployment_environment,
            "ffmpeg": toolchain.ffmpeg_path,
            "yt_dlp": toolchain.yt_dlp_path,
            "mock_mode": {
                "r2": settings.r2_mock_mode,
                "twelve_labs": settings.twelve_labs_mock_mode,
            }
        }
    )

    if not toolchain.has_ffmpeg:
        logger.error("FFmpeg not found; clip requests will fail until it is installed")

    # Validate configuration
    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    if settings.twelve_labs_api_key and not settings.secondary_configured:
        logger.warning("TWELVE_LABS_API_KEY looks malformed; secondary indexing disabled")

    yield

    # Shutdown
    logger.info("Clip pipeline API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Download, trim and store campaign video clips.

        ## Authentication

        All endpoints except health checks require an API key provided in
        the `X-API-Key` header.

        ## Workflow

        `POST /api/v1/videos/process` with a video URL (TikTok, YouTube or a
        direct .mp4/.webm/... link), a time window and the campaign's storage
        folder. The clip is re-encoded to H.264/AAC MP4, uploaded to primary
        storage and, when configured, submitted for video indexing.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    # Configure allowed origins via CORS_ORIGINS environment variable
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        video.router,
        prefix="/api/v1/videos",
        tags=["Videos"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - points at the docs."""
        return {
            "message": "Clip Pipeline API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        We log the full error server-side but return a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error. Please contact support if this persists."
            }
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


# For debugging/development
if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
