"""
Domain models for the clip pipeline.

These models represent the values that flow between pipeline stages. They
have no dependencies on external frameworks, binaries, or APIs: the
classifier produces them, the engines consume them, and the API layer
serializes them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class SourceCategory(Enum):
    """Where a video URL points, which decides how it is downloaded."""
    SHORT_FORM = "short_form"    # tiktok-style, numeric id in the path
    STREAMING = "streaming"      # youtube-style watch/embed/short links
    DIRECT_FILE = "direct_file"  # anything else, fetched over plain HTTP


class SecondaryJobState(Enum):
    """Remote indexing job state as reported by the secondary sink."""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class SourceClassification:
    """
    Result of classifying a URL.

    Frozen because a classification is produced once per request and must
    not be re-derived downstream. canonical_url is what gets downloaded.
    """
    category: SourceCategory
    original_url: str
    canonical_url: str
    embedded_id: Optional[str] = None


@dataclass(frozen=True)
class AcquisitionRequest:
    """What a single download strategy is asked to produce."""
    classification: SourceClassification
    destination_path: str

    @property
    def url(self) -> str:
        return self.classification.canonical_url


@dataclass(frozen=True)
class AcquisitionResult:
    """A fully downloaded source video on local disk."""
    local_path: str
    byte_size: int

    def __post_init__(self) -> None:
        if self.byte_size <= 0:
            raise ValueError("Acquired file cannot be empty")


@dataclass(frozen=True)
class TrimWindow:
    """The caller-facing time window, in seconds of source time."""
    start_time: float
    end_time: float

    def __post_init__(self) -> None:
        _validate_window(self.start_time, self.end_time)

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class TrimSpec:
    """
    A fully specified trim job.

    end_time - start_time is the exact output duration; the transcoder is
    told the duration directly rather than an end position.
    """
    start_time: float
    end_time: float
    input_path: str
    output_path: str

    def __post_init__(self) -> None:
        _validate_window(self.start_time, self.end_time)

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @classmethod
    def from_window(cls, window: TrimWindow, input_path: str, output_path: str) -> "TrimSpec":
        return cls(
            start_time=window.start_time,
            end_time=window.end_time,
            input_path=input_path,
            output_path=output_path,
        )


def _validate_window(start_time: float, end_time: float) -> None:
    if start_time < 0:
        raise ValueError("Start time cannot be negative")
    if end_time <= start_time:
        raise ValueError("End time must be after start time")


@dataclass(frozen=True)
class DeliveryTargets:
    """Where the trimmed clip goes and how it is named."""
    folder_id: str
    campaign_name: str
    upload_type: str = "video"

    def __post_init__(self) -> None:
        if not self.folder_id.strip():
            raise ValueError("Destination folder id cannot be empty")
        if not self.campaign_name.strip():
            raise ValueError("Campaign name cannot be empty")


@dataclass(frozen=True)
class PrimaryReceipt:
    """Proof the primary sink stored the clip."""
    id: str
    name: str
    web_view_link: Optional[str] = None


@dataclass(frozen=True)
class SecondaryReceipt:
    """
    Outcome of secondary delivery.

    status is "completed", "failed" (the remote job failed) or
    "processing" (the wait timed out and the job was left running).
    """
    job_id: str
    status: str
    index_id: Optional[str] = None


@dataclass
class DeliveryOutcome:
    """
    Result of a pipeline run.

    The run succeeded iff primary is present. secondary and
    secondary_error are informational and never change that.
    """
    primary: PrimaryReceipt
    secondary: Optional[SecondaryReceipt] = None
    secondary_error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.primary is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "primary": {
                "id": self.primary.id,
                "name": self.primary.name,
                "web_view_link": self.primary.web_view_link,
            },
            "secondary": None if self.secondary is None else {
                "job_id": self.secondary.job_id,
                "index_id": self.secondary.index_id,
                "status": self.secondary.status,
            },
            "secondary_error": self.secondary_error,
        }


@dataclass
class StrategyAttempt:
    """One failed download strategy, kept for diagnostics."""
    strategy: str
    error: str
    details: dict[str, Any] = field(default_factory=dict)
