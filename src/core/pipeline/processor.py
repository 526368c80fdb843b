"""
The clip pipeline: classify → acquire → trim → deliver.

VideoPipeline only sequences the stages. The engines behind it are
protocols, so this module stays free of yt-dlp, ffmpeg and boto3 and can
be tested with in-memory fakes.

Stages never overlap within a run, and the working set is torn down
exactly once after the last stage, on success and on every error path.
"""

import logging
import secrets
import string
from datetime import date
from typing import Optional, Protocol

from .classifier import classify
from .delivery import DeliveryOrchestrator
from .errors import TrimError, TrimErrorKind
from .models import (
    AcquisitionResult,
    DeliveryOutcome,
    DeliveryTargets,
    SourceClassification,
    TrimSpec,
    TrimWindow,
)
from .workspace import TempResourceManager, WorkingSet

logger = logging.getLogger(__name__)


_ID_ALPHABET = string.ascii_uppercase + string.digits


class Acquirer(Protocol):
    async def acquire(
        self,
        classification: SourceClassification,
        working_set: WorkingSet,
    ) -> AcquisitionResult:
        ...


class Trimmer(Protocol):
    @property
    def available(self) -> bool:
        """False when no transcoder binary was found at startup."""
        ...

    async def trim(self, spec: TrimSpec) -> str:
        ...

    async def probe_duration(self, path: str) -> Optional[float]:
        ...


def generate_file_name(
    campaign_name: str,
    upload_type: str = "video",
    today: Optional[date] = None,
) -> str:
    """
    Name a clip like Summer-Launch_2024-06-01_video_7GQ2K9XA.mp4.

    Path separators in the campaign name are replaced so the name is
    always a single path segment.
    """
    today = today or date.today()
    campaign = campaign_name.strip().replace("/", "-").replace("\\", "-")
    unique_id = "".join(secrets.choice(_ID_ALPHABET) for _ in range(8))
    return f"{campaign}_{today.isoformat()}_{upload_type}_{unique_id}.mp4"


class VideoPipeline:
    """
    Runs one request end to end.

    Holds only read-only collaborators, so a single instance is shared by
    concurrent requests; each run gets its own working set.
    """

    def __init__(
        self,
        resources: TempResourceManager,
        acquisition: Acquirer,
        trimmer: Trimmer,
        delivery: DeliveryOrchestrator,
    ) -> None:
        self._resources = resources
        self._acquisition = acquisition
        self._trimmer = trimmer
        self._delivery = delivery

    async def process_video(
        self,
        video_url: str,
        trim_window: TrimWindow,
        targets: DeliveryTargets,
    ) -> DeliveryOutcome:
        """
        Download, trim and deliver one clip.

        Raises ConfigurationError, AcquisitionError, TrimError or
        PrimaryDeliveryError. Secondary delivery problems end up on the
        returned outcome instead.
        """
        if not self._trimmer.available:
            # Don't download something we already know we can't trim
            raise TrimError(
                "No transcoder binary available on this host",
                kind=TrimErrorKind.BINARY_NOT_FOUND,
            )

        classification = classify(video_url)
        file_name = generate_file_name(targets.campaign_name, targets.upload_type)

        logger.info(
            "Starting video processing",
            extra={
                "category": classification.category.value,
                "canonical_url": classification.canonical_url,
                "start": trim_window.start_time,
                "end": trim_window.end_time,
                "file_name": file_name,
            }
        )

        with self._resources.open() as working_set:
            acquired = await self._acquisition.acquire(classification, working_set)

            await self._check_window(acquired.local_path, trim_window)

            spec = TrimSpec.from_window(
                trim_window,
                input_path=acquired.local_path,
                output_path=working_set.allocate("output"),
            )
            await self._trimmer.trim(spec)

            outcome = await self._delivery.deliver(spec.output_path, file_name, targets.folder_id)

        logger.info(
            "Video processing completed",
            extra={
                "file_id": outcome.primary.id,
                "secondary_status": outcome.secondary.status if outcome.secondary else None,
                "secondary_error": outcome.secondary_error,
            }
        )
        return outcome

    async def _check_window(self, source_path: str, window: TrimWindow) -> None:
        """Reject windows that start past the end of the source."""
        duration = await self._trimmer.probe_duration(source_path)
        if duration is None:
            return

        if window.start_time >= duration:
            raise TrimError(
                f"Trim window starts at {window.start_time:.2f}s but the source "
                f"is only {duration:.2f}s long"
            )
        if window.end_time > duration:
            logger.warning(
                "Trim window extends past end of source; clip will be shorter",
                extra={"end": window.end_time, "source_duration": duration}
            )
