"""
Clip acquisition-and-processing pipeline.

Contains the domain models, URL classification, temp-file management,
delivery sequencing and the pipeline that ties them together.
"""

from .classifier import classify, has_video_extension
from .delivery import DeliveryOrchestrator, NotAuthenticatedError, PrimarySink, SecondarySink
from .errors import (
    AcquisitionError,
    ConfigurationError,
    PipelineError,
    PrimaryDeliveryError,
    SecondaryDeliveryError,
    TrimError,
    TrimErrorKind,
)
from .models import (
    AcquisitionRequest,
    AcquisitionResult,
    DeliveryOutcome,
    DeliveryTargets,
    PrimaryReceipt,
    SecondaryJobState,
    SecondaryReceipt,
    SourceCategory,
    SourceClassification,
    StrategyAttempt,
    TrimSpec,
    TrimWindow,
)
from .processor import VideoPipeline, generate_file_name
from .workspace import TempResourceManager, WorkingSet, resolve_temp_base

__all__ = [
    "classify",
    "has_video_extension",
    "DeliveryOrchestrator",
    "NotAuthenticatedError",
    "PrimarySink",
    "SecondarySink",
    "AcquisitionError",
    "ConfigurationError",
    "PipelineError",
    "PrimaryDeliveryError",
    "SecondaryDeliveryError",
    "TrimError",
    "TrimErrorKind",
    "AcquisitionRequest",
    "AcquisitionResult",
    "DeliveryOutcome",
    "DeliveryTargets",
    "PrimaryReceipt",
    "SecondaryJobState",
    "SecondaryReceipt",
    "SourceCategory",
    "SourceClassification",
    "StrategyAttempt",
    "TrimSpec",
    "TrimWindow",
    "VideoPipeline",
    "generate_file_name",
    "TempResourceManager",
    "WorkingSet",
    "resolve_temp_base",
]
