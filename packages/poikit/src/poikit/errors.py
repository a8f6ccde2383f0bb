"""Error codes, structured error model and backend exceptions for poikit.

``POIErrorCode`` contains every error/warning code emitted by the
extraction pipeline.  ``POIExtractError`` is the structured detail carried
by both recorded backend attempts and raised ``BackendError`` exceptions.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class POIErrorCode(str, Enum):
    """Error codes for POI extraction.

    Each value equals its name so codes are stable strings suitable for
    metrics and alerting.  ``E_`` prefix indicates fatal errors;
    ``W_`` prefix indicates non-fatal warnings.
    """

    # Backend errors
    E_BACKEND_UNAVAILABLE = "E_BACKEND_UNAVAILABLE"
    E_MODEL_NOT_LOADED = "E_MODEL_NOT_LOADED"
    E_EXTRACTION_FAILED = "E_EXTRACTION_FAILED"
    E_EXTRACTION_TIMEOUT = "E_EXTRACTION_TIMEOUT"
    E_INVALID_RESPONSE = "E_INVALID_RESPONSE"

    # Pipeline outcomes
    E_NO_VALID_DATA = "E_NO_VALID_DATA"
    E_NOT_AVAILABLE = "E_NOT_AVAILABLE"

    # Collaborator errors
    E_OCR_FAILED = "E_OCR_FAILED"
    E_STORE_FAILED = "E_STORE_FAILED"

    # Warnings (non-fatal)
    W_PARSE_MALFORMED_JSON = "W_PARSE_MALFORMED_JSON"
    W_PARSE_SCHEMA_INVALID = "W_PARSE_SCHEMA_INVALID"
    W_PARSE_PLAIN_TEXT_FALLBACK = "W_PARSE_PLAIN_TEXT_FALLBACK"
    W_BACKEND_SKIPPED = "W_BACKEND_SKIPPED"
    W_OCR_CORRECTION_FAILED = "W_OCR_CORRECTION_FAILED"


class POIExtractError(BaseModel):
    """Structured error with code, message, and the backend that raised it."""

    code: str
    message: str
    stage: str | None = None
    recoverable: bool = False
    backend: str | None = None


# ---------------------------------------------------------------------------
# Backend exceptions
# ---------------------------------------------------------------------------


class BackendError(Exception):
    """Base class for typed backend failures.

    Backends raise subclasses of this error; the orchestrator absorbs them
    at the backend-call boundary and records the attached ``error``.
    """

    code: POIErrorCode = POIErrorCode.E_EXTRACTION_FAILED

    def __init__(self, message: str, backend: str | None = None) -> None:
        self.error = POIExtractError(
            code=self.code.value,
            message=message,
            stage="extract",
            recoverable=True,
            backend=backend,
        )
        super().__init__(message)


class BackendUnavailable(BackendError):
    """Credentials or model files are absent. Not retried."""

    code = POIErrorCode.E_BACKEND_UNAVAILABLE


class ModelNotLoaded(BackendError):
    """The model could not be brought into memory."""

    code = POIErrorCode.E_MODEL_NOT_LOADED


class ExtractionFailed(BackendError):
    """Decode, network or timeout failure during a single extraction."""

    code = POIErrorCode.E_EXTRACTION_FAILED

    def __init__(self, reason: str, backend: str | None = None) -> None:
        self.reason = reason
        if reason == "timeout":
            self.code = POIErrorCode.E_EXTRACTION_TIMEOUT
        super().__init__(f"extraction failed: {reason}", backend=backend)


class InvalidResponse(BackendError):
    """The backend answered, but not in the expected envelope."""

    code = POIErrorCode.E_INVALID_RESPONSE
