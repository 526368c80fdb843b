"""
Delivery of a trimmed clip to the primary and secondary sinks.

The ordering and failure rules are the whole point of this module:

1. The primary sink must succeed, or the run fails. No secondary attempt.
2. The secondary sink is only tried when it passes its configuration
   precondition (checked without touching the network).
3. Anything that goes wrong on the secondary side is logged and attached
   to the outcome. It never changes the primary result and never raises.

Sinks are protocols so tests (and local dev) can plug in in-memory
implementations.
"""

import asyncio
import logging
import re
import time
from typing import Optional, Protocol

from .errors import PrimaryDeliveryError, SecondaryDeliveryError
from .models import DeliveryOutcome, PrimaryReceipt, SecondaryJobState, SecondaryReceipt

logger = logging.getLogger(__name__)


class NotAuthenticatedError(Exception):
    """Raised by a sink when its credentials are missing, revoked or expired."""
    pass


# Messages that mean "log in again" rather than "try again later"
_AUTH_EXPIRED_PATTERN = re.compile(
    r"invalid_grant|expired|unauthori[sz]ed|invalid credentials|\b401\b|re-?authenticat",
    re.IGNORECASE,
)


def is_auth_expired(error: BaseException) -> bool:
    if isinstance(error, NotAuthenticatedError):
        return True
    return bool(_AUTH_EXPIRED_PATTERN.search(str(error)))


class PrimarySink(Protocol):
    """
    Mandatory durable storage for clips.

    Raises NotAuthenticatedError when credentials need refreshing, any
    other exception for everything else.
    """

    async def upload(
        self,
        local_path: str,
        file_name: str,
        folder_id: str,
    ) -> PrimaryReceipt:
        """Upload the file into the folder and return what was stored."""
        ...


class SecondarySink(Protocol):
    """Optional indexing service that processes clips asynchronously."""

    index_id: Optional[str]

    @property
    def is_configured(self) -> bool:
        """Precondition for any attempt. Must not perform I/O."""
        ...

    async def submit(self, local_path: str, file_name: str) -> str:
        """Start remote processing and return the job id."""
        ...

    async def poll_status(self, job_id: str) -> SecondaryJobState:
        """Report the remote job's current state."""
        ...


class DeliveryOrchestrator:
    """
    Sequences one clip through the primary and (optionally) secondary sink.

    Stateless between calls, so one instance can serve concurrent runs.
    """

    def __init__(
        self,
        primary_sink: PrimarySink,
        secondary_sink: Optional[SecondarySink] = None,
        poll_interval_seconds: float = 3.0,
        poll_timeout_seconds: float = 30.0,
    ) -> None:
        if poll_interval_seconds < 0:
            raise ValueError("poll_interval_seconds cannot be negative")
        if poll_timeout_seconds < 0:
            raise ValueError("poll_timeout_seconds cannot be negative")

        self._primary = primary_sink
        self._secondary = secondary_sink
        self._poll_interval = poll_interval_seconds
        self._poll_timeout = poll_timeout_seconds

    @property
    def secondary_enabled(self) -> bool:
        return self._secondary is not None and bool(self._secondary.is_configured)

    async def deliver(
        self,
        output_path: str,
        file_name: str,
        folder_id: str,
    ) -> DeliveryOutcome:
        """
        Deliver the clip.

        Raises PrimaryDeliveryError if the primary upload fails. Otherwise
        always returns an outcome, whatever happened on the secondary side.
        """
        primary = await self._deliver_primary(output_path, file_name, folder_id)
        outcome = DeliveryOutcome(primary=primary)

        if not self.secondary_enabled:
            logger.info(
                "Skipping secondary delivery - not configured",
                extra={"file_name": file_name}
            )
            return outcome

        try:
            outcome.secondary = await self._deliver_secondary(output_path, file_name)
        except Exception as e:
            # Non-fatal by contract: record it and keep the primary result
            logger.error(
                "Secondary delivery failed (non-critical)",
                extra={"file_name": file_name, "error": str(e)}
            )
            outcome.secondary_error = str(e) or type(e).__name__

        return outcome

    async def _deliver_primary(
        self,
        output_path: str,
        file_name: str,
        folder_id: str,
    ) -> PrimaryReceipt:
        try:
            receipt = await self._primary.upload(output_path, file_name, folder_id)
        except Exception as e:
            auth_expired = is_auth_expired(e)
            logger.error(
                "Primary delivery failed",
                extra={
                    "file_name": file_name,
                    "folder_id": folder_id,
                    "auth_expired": auth_expired,
                    "error": str(e),
                }
            )
            raise PrimaryDeliveryError(
                f"Primary upload failed: {e}",
                auth_expired=auth_expired,
            ) from e

        if receipt is None or not receipt.id:
            raise PrimaryDeliveryError("Primary upload returned no file id")

        logger.info(
            "Primary delivery complete",
            extra={"file_name": file_name, "file_id": receipt.id}
        )
        return receipt

    async def _deliver_secondary(self, output_path: str, file_name: str) -> SecondaryReceipt:
        job_id = await self._secondary.submit(output_path, file_name)
        if not job_id:
            raise SecondaryDeliveryError("Indexing service returned no job id")

        logger.info("Secondary job submitted", extra={"job_id": job_id})

        status = await self._wait_for_job(job_id)
        return SecondaryReceipt(job_id=job_id, status=status, index_id=self._secondary.index_id)

    async def _wait_for_job(self, job_id: str) -> str:
        """
        Poll until the job is terminal or the timeout passes.

        A timeout is not an error: the job keeps running remotely and we
        report it as still processing.
        """
        deadline = time.monotonic() + self._poll_timeout

        while True:
            try:
                state = await self._secondary.poll_status(job_id)
            except Exception as e:
                raise SecondaryDeliveryError(
                    f"Status check failed for indexing job {job_id}: {e}"
                ) from e

            if state == SecondaryJobState.SUCCEEDED:
                logger.info("Secondary job completed", extra={"job_id": job_id})
                return "completed"
            if state == SecondaryJobState.FAILED:
                logger.warning("Secondary job failed remotely", extra={"job_id": job_id})
                return "failed"

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.info(
                    "Secondary job still processing, continuing in background",
                    extra={"job_id": job_id}
                )
                return "processing"

            await asyncio.sleep(min(self._poll_interval, remaining))
