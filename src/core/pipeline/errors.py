"""
Typed errors for the clip pipeline.

Every error that can abort a run carries the stage it came from, so the
caller gets one structured error that says where things went wrong without
needing server logs. Secondary delivery errors exist as a type but are
always caught by the orchestrator.
"""

from enum import Enum
from typing import Any, Optional

from .models import StrategyAttempt


class PipelineError(Exception):
    """Base class for errors surfaced to the pipeline caller."""

    stage = "pipeline"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "error": type(self).__name__,
            "message": self.message,
        }


class ConfigurationError(PipelineError):
    """The host cannot run the pipeline at all (no temp dir, no binary)."""

    stage = "configuration"


class AcquisitionError(PipelineError):
    """Every strategy in the download chain failed."""

    stage = "acquisition"

    def __init__(self, attempts: list[StrategyAttempt], message: Optional[str] = None) -> None:
        self.attempts = list(attempts)
        if message is None:
            tried = ", ".join(a.strategy for a in self.attempts) or "none"
            message = f"All {len(self.attempts)} download strategies failed ({tried})"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["attempts"] = [
            {"strategy": a.strategy, "error": a.error, **a.details}
            for a in self.attempts
        ]
        return data


class TrimErrorKind(Enum):
    TRANSCODER_FAULT = "transcoder_fault"
    BINARY_NOT_FOUND = "binary_not_found"


class TrimError(PipelineError):
    """The transcoder could not produce the clip."""

    stage = "trim"

    def __init__(self, message: str, kind: TrimErrorKind = TrimErrorKind.TRANSCODER_FAULT) -> None:
        super().__init__(message)
        self.kind = kind

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["kind"] = self.kind.value
        return data


class PrimaryDeliveryError(PipelineError):
    """
    Upload to the primary sink failed.

    auth_expired tells the caller to re-authenticate rather than retry.
    """

    stage = "primary_delivery"

    def __init__(self, message: str, auth_expired: bool = False) -> None:
        super().__init__(message)
        self.auth_expired = auth_expired

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["reauthenticate"] = self.auth_expired
        return data


class SecondaryDeliveryError(PipelineError):
    """Secondary delivery failed. Never propagated out of the orchestrator."""

    stage = "secondary_delivery"
