"""Backend protocols for the poikit package.

Defines ``ExtractorBackend`` (the uniform capability every extractor
variant conforms to), ``GenerationRuntime`` (the in-process inference
engine behind local and vision models), and the external collaborators
the orchestrator consumes: ``OCRBackend`` and ``POIStore``.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from poikit.models import BackendKind, ExtractionMode, POICandidate, POIRecord


# ---------------------------------------------------------------------------
# Generation Status Model
# ---------------------------------------------------------------------------


class GenerationState(str, Enum):
    """Progress of a single generation inside a runtime."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class GenerationStatus(BaseModel):
    """Snapshot returned by ``GenerationRuntime.poll()``."""

    state: GenerationState
    output: str = ""
    error: str | None = None


# ---------------------------------------------------------------------------
# Extractor Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class ExtractorBackend(Protocol):
    """Interface for POI extractor backends (cloud API, local model, ...).

    A backend supports text mode, image mode, or both, and reports every
    failure as a :class:`~poikit.errors.BackendError` subclass.
    """

    @property
    def kind(self) -> BackendKind:
        """Variant tag used for policy selection."""
        ...

    def name(self) -> str:
        """Human-readable backend name for logs."""
        ...

    def supports(self, mode: ExtractionMode) -> bool:
        """Return True if the backend accepts this input mode."""
        ...

    async def is_available(self) -> bool:
        """Check credentials / model files without loading anything."""
        ...

    async def extract_from_text(self, text: str) -> POICandidate:
        """Extract a candidate from OCR text."""
        ...

    async def extract_from_image(self, image_bytes: bytes) -> POICandidate:
        """Extract a candidate directly from an encoded image."""
        ...

    async def load(self) -> None:
        """Bring model state into memory. No-op for stateless backends."""
        ...

    async def unload(self) -> None:
        """Release model state. No-op for stateless backends."""
        ...


# ---------------------------------------------------------------------------
# Runtime Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class GenerationRuntime(Protocol):
    """In-process inference engine driven by a ``ModelBackend``.

    The runtime owns the token buffer and context; the backend guarantees
    that at most one generation is in flight and that ``reset()`` runs
    after every generation.
    """

    async def is_available(self) -> bool:
        """Return True if the model can be loaded."""
        ...

    async def load(self) -> None:
        """Load model weights. Raises on failure."""
        ...

    async def start(self, prompt: str, image_bytes: bytes | None = None) -> None:
        """Begin generating for ``prompt`` (and optional image)."""
        ...

    async def poll(self) -> GenerationStatus:
        """Report progress of the current generation."""
        ...

    async def reset(self) -> None:
        """Clear generation and context state."""
        ...

    async def close(self) -> None:
        """Free the loaded model."""
        ...


# ---------------------------------------------------------------------------
# Collaborator Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class OCRBackend(Protocol):
    """Interface for the text recognition collaborator.

    Returns recognized lines in top-to-bottom detection order.
    """

    async def recognize_lines(self, image_bytes: bytes) -> list[str]:
        """Run text recognition on the image."""
        ...


@runtime_checkable
class POIStore(Protocol):
    """Interface for the persistence collaborator."""

    async def save(self, record: POIRecord, key: str) -> None:
        """Persist a new POI under an external key."""
        ...


__all__ = [
    "GenerationState",
    "GenerationStatus",
    "ExtractorBackend",
    "GenerationRuntime",
    "OCRBackend",
    "POIStore",
]
