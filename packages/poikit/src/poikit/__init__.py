"""poikit -- POI extraction from noisy OCR text and signage photos."""

from poikit.backends import (
    AssistantBackend,
    CloudAPIBackend,
    LocalModelBackend,
    ModelBackend,
    OllamaRuntime,
    VisionModelBackend,
)
from poikit.config import POIExtractorConfig
from poikit.errors import (
    BackendError,
    BackendUnavailable,
    ExtractionFailed,
    InvalidResponse,
    ModelNotLoaded,
    POIErrorCode,
    POIExtractError,
)
from poikit.merge import Merger, merge
from poikit.models import (
    BackendAttempt,
    BackendKind,
    BackendState,
    BatchItem,
    BatchSummary,
    ExtractionMode,
    ExtractionOutcome,
    ExtractionPolicy,
    OutcomeStatus,
    POICandidate,
    POIRecord,
    VisitStatus,
)
from poikit.orchestrator import ExtractionOrchestrator
from poikit.parser import ResponseParser
from poikit.protocols import (
    ExtractorBackend,
    GenerationRuntime,
    GenerationState,
    GenerationStatus,
    OCRBackend,
    POIStore,
)
from poikit.rules import FieldExtractor

__all__ = [
    # Orchestrator
    "ExtractionOrchestrator",
    # Config
    "POIExtractorConfig",
    # Extraction stages
    "FieldExtractor",
    "ResponseParser",
    "Merger",
    "merge",
    # Backends
    "ModelBackend",
    "CloudAPIBackend",
    "LocalModelBackend",
    "VisionModelBackend",
    "AssistantBackend",
    "OllamaRuntime",
    # Models -- enums
    "BackendKind",
    "BackendState",
    "ExtractionMode",
    "ExtractionPolicy",
    "OutcomeStatus",
    "VisitStatus",
    # Models -- data
    "POICandidate",
    "POIRecord",
    "BackendAttempt",
    "ExtractionOutcome",
    "BatchItem",
    "BatchSummary",
    # Errors
    "POIErrorCode",
    "POIExtractError",
    "BackendError",
    "BackendUnavailable",
    "ModelNotLoaded",
    "ExtractionFailed",
    "InvalidResponse",
    # Protocols
    "ExtractorBackend",
    "GenerationRuntime",
    "GenerationState",
    "GenerationStatus",
    "OCRBackend",
    "POIStore",
]
