"""
Video processing endpoint.

Thin HTTP wrapper around VideoPipeline.process_video. The route's job is
request validation and translating pipeline errors into status codes:

- 401: primary storage credentials expired, client must re-authenticate
- 422: the video could not be downloaded or trimmed
- 502: the primary sink failed for any other reason
- 500: the host is misconfigured (no temp dir, no transcoder)

Error bodies carry the pipeline's structured error (stage, strategies
tried) so failures can be diagnosed without server logs.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from ...core.pipeline.errors import (
    AcquisitionError,
    ConfigurationError,
    PrimaryDeliveryError,
    TrimError,
    TrimErrorKind,
)
from ...core.pipeline.models import DeliveryTargets, TrimWindow
from ..dependencies import AuthenticatedUser, VideoPipelineDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class ProcessVideoRequest(BaseModel):
    """Request to download, trim and store a clip."""
    video_url: str = Field(min_length=1, description="Short-form, streaming or direct video URL")
    campaign_name: str = Field(min_length=1, description="Used in the clip's file name")
    campaign_folder_id: str = Field(min_length=1, description="Destination folder in primary storage")
    start_time: float = Field(ge=0, description="Clip start in seconds")
    end_time: float = Field(gt=0, description="Clip end in seconds")
    upload_type: str = Field(default="video", description="Used in the clip's file name")


class PrimaryReceiptResponse(BaseModel):
    id: str
    name: str
    web_view_link: Optional[str] = None


class SecondaryReceiptResponse(BaseModel):
    job_id: str
    index_id: Optional[str] = None
    status: str = Field(description="completed, failed or processing")


class ProcessVideoResponse(BaseModel):
    """Result of a successful run. Secondary fields are informational."""
    succeeded: bool
    primary: PrimaryReceiptResponse
    secondary: Optional[SecondaryReceiptResponse] = None
    secondary_error: Optional[str] = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/process",
    response_model=ProcessVideoResponse,
    status_code=status.HTTP_200_OK,
    summary="Download, trim and store a video clip",
)
async def process_video(
    _api_key: AuthenticatedUser,
    request: ProcessVideoRequest,
    pipeline: VideoPipelineDep,
) -> ProcessVideoResponse:
    try:
        window = TrimWindow(start_time=request.start_time, end_time=request.end_time)
        targets = DeliveryTargets(
            folder_id=request.campaign_folder_id,
            campaign_name=request.campaign_name,
            upload_type=request.upload_type,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )

    try:
        outcome = await pipeline.process_video(request.video_url, window, targets)
    except PrimaryDeliveryError as e:
        code = status.HTTP_401_UNAUTHORIZED if e.auth_expired else status.HTTP_502_BAD_GATEWAY
        raise HTTPException(status_code=code, detail=e.to_dict())
    except TrimError as e:
        code = (
            status.HTTP_500_INTERNAL_SERVER_ERROR
            if e.kind == TrimErrorKind.BINARY_NOT_FOUND
            else status.HTTP_422_UNPROCESSABLE_ENTITY
        )
        raise HTTPException(status_code=code, detail=e.to_dict())
    except AcquisitionError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.to_dict(),
        )
    except ConfigurationError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=e.to_dict(),
        )

    return ProcessVideoResponse(**_outcome_payload(outcome.to_dict()))


def _outcome_payload(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "succeeded": data["succeeded"],
        "primary": PrimaryReceiptResponse(**data["primary"]),
        "secondary": SecondaryReceiptResponse(**data["secondary"]) if data["secondary"] else None,
        "secondary_error": data["secondary_error"],
    }
