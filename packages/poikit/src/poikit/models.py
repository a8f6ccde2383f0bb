"""Pydantic models and enumerations for the poikit package.

Contains the extraction candidate (``POICandidate``), the persistence
payload (``POIRecord``), policy/backend enumerations, and the outcome
types returned by the orchestrator.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from poikit.errors import POIExtractError

POI_FIELDS: tuple[str, ...] = (
    "name",
    "address",
    "phone_number",
    "business_hours",
    "category",
    "price_range",
)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class BackendKind(str, Enum):
    """Variant tag of an extractor backend."""

    CLOUD = "cloud"
    VISION = "vision"
    LOCAL = "local"
    ASSISTANT = "assistant"


class ExtractionMode(str, Enum):
    """Input a backend consumes."""

    TEXT = "text"
    IMAGE = "image"


class ExtractionPolicy(str, Enum):
    """Operator-chosen backend selection policy.

    ``NONE`` runs rule-based extraction only, ``AUTO`` walks the configured
    priority order, and every other value names a single backend.
    """

    NONE = "none"
    AUTO = "auto"
    CLOUD = "cloud"
    VISION = "vision"
    LOCAL = "local"
    ASSISTANT = "assistant"

    def backend_kind(self) -> BackendKind | None:
        """Return the single backend this policy names, if any."""
        if self in (ExtractionPolicy.NONE, ExtractionPolicy.AUTO):
            return None
        return BackendKind(self.value)


class BackendState(str, Enum):
    """Lifecycle of a backend holding loaded-model state."""

    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    GENERATING = "generating"


class OutcomeStatus(str, Enum):
    """Overall result tag of an orchestrated extraction."""

    SUCCESS = "success"
    NO_VALID_DATA = "no_valid_data"
    NOT_AVAILABLE = "not_available"


class VisitStatus(str, Enum):
    """Visit status stored with a persisted POI."""

    WANT_TO_VISIT = "want_to_visit"
    VISITED = "visited"
    FAVORITE = "favorite"


# ---------------------------------------------------------------------------
# Candidate
# ---------------------------------------------------------------------------


class POICandidate(BaseModel):
    """One extraction attempt's output record.

    Empty or whitespace-only strings are collapsed to ``None`` on
    construction so that confidence and ``has_valid_data`` never count an
    empty string as present data.
    """

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    address: str | None = None
    phone_number: str | None = None
    business_hours: str | None = None
    category: str | None = None
    price_range: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @field_validator(*POI_FIELDS, mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @property
    def field_count(self) -> int:
        """Number of populated fields out of six."""
        return sum(1 for f in POI_FIELDS if getattr(self, f) is not None)

    @property
    def has_valid_data(self) -> bool:
        """Minimum bar for a usable candidate: a name or an address."""
        return self.name is not None or self.address is not None

    def field_values(self) -> dict[str, str | None]:
        """Return the six extracted fields as a dict."""
        return {f: getattr(self, f) for f in POI_FIELDS}

    @classmethod
    def build(cls, bonus: float = 0.0, **fields: str | None) -> POICandidate:
        """Build a candidate and compute its completeness confidence.

        Confidence is ``populated / 6`` plus ``bonus``, capped at 1.0.
        """
        draft = cls(**fields)
        confidence = min(1.0, draft.field_count / len(POI_FIELDS) + bonus)
        return draft.model_copy(update={"confidence": confidence})

    @classmethod
    def empty(cls, confidence: float = 0.0) -> POICandidate:
        """Return a candidate without fields.

        ``0.0`` means no attempt was made; a low non-zero value marks a
        response that was received but could not be parsed.
        """
        return cls(confidence=confidence)


# ---------------------------------------------------------------------------
# Persistence payload
# ---------------------------------------------------------------------------


class POIRecord(BaseModel):
    """The fields handed to the persistence collaborator for a new POI."""

    name: str | None = None
    address: str | None = None
    phone_number: str | None = None
    business_hours: str | None = None
    category: str | None = None
    price_range: str | None = None
    visit_status: VisitStatus = VisitStatus.WANT_TO_VISIT

    @classmethod
    def from_candidate(cls, candidate: POICandidate) -> POIRecord:
        return cls(**candidate.field_values())


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


class BackendAttempt(BaseModel):
    """Record of one backend call, successful or not."""

    backend: BackendKind
    mode: ExtractionMode
    success: bool
    has_valid_data: bool = False
    confidence: float = 0.0
    error_code: str | None = None
    message: str | None = None
    duration_seconds: float = 0.0


class ExtractionOutcome(BaseModel):
    """Final result returned by the orchestrator."""

    candidate: POICandidate
    used_model: bool
    status: OutcomeStatus
    source: str
    ocr_text: str | None = None
    attempts: list[BackendAttempt] = []
    errors: list[str] = []
    warnings: list[str] = []
    error_details: list[POIExtractError] = []
    processing_time_seconds: float = 0.0


class BatchItem(BaseModel):
    """One text to extract and the key it is stored under."""

    key: str
    text: str


class BatchSummary(BaseModel):
    """Result of a batch extraction run."""

    total: int
    saved: int
    outcomes: dict[str, ExtractionOutcome] = {}


__all__ = [
    "POI_FIELDS",
    "BackendKind",
    "ExtractionMode",
    "ExtractionPolicy",
    "BackendState",
    "OutcomeStatus",
    "VisitStatus",
    "POICandidate",
    "POIRecord",
    "BackendAttempt",
    "ExtractionOutcome",
    "BatchItem",
    "BatchSummary",
]
