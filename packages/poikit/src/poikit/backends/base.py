"""Shared machinery for backends that drive a loaded model.

``ModelBackend`` owns the load/generate/reset sequence for a
:class:`~poikit.protocols.GenerationRuntime`.  A per-instance
``asyncio.Lock`` serializes that sequence, so at most one generation is
in flight against the runtime's decode state at any time.
"""

from __future__ import annotations

import asyncio
import logging

from poikit.config import POIExtractorConfig
from poikit.errors import (
    BackendError,
    BackendUnavailable,
    ExtractionFailed,
    ModelNotLoaded,
    POIErrorCode,
)
from poikit.models import BackendKind, BackendState, ExtractionMode, POICandidate
from poikit.parser import ResponseParser
from poikit.protocols import GenerationRuntime, GenerationState

logger = logging.getLogger("poikit")


class ModelBackend:
    """Base class for local and vision model backends.

    Subclasses set ``kind`` and ``modes`` and implement the extraction
    methods on top of :meth:`generate`.

    Parameters
    ----------
    runtime:
        Inference engine holding the model weights and decode state.
    config:
        Pipeline configuration providing polling and confidence settings.
    parser:
        Response parser; a default one is built from ``config``.
    """

    kind: BackendKind
    modes: frozenset[ExtractionMode] = frozenset()

    def __init__(
        self,
        runtime: GenerationRuntime,
        config: POIExtractorConfig | None = None,
        parser: ResponseParser | None = None,
    ) -> None:
        self._runtime = runtime
        self._config = config or POIExtractorConfig()
        self._parser = parser or ResponseParser(self._config)
        self._state = BackendState.UNLOADED
        self._lock = asyncio.Lock()

    @property
    def state(self) -> BackendState:
        return self._state

    def name(self) -> str:
        return self.kind.value

    def supports(self, mode: ExtractionMode) -> bool:
        return mode in self.modes

    async def is_available(self) -> bool:
        return await self._runtime.is_available()

    async def extract_from_text(self, text: str) -> POICandidate:
        raise BackendUnavailable(
            f"{self.name()} does not accept text input", backend=self.name()
        )

    async def extract_from_image(self, image_bytes: bytes) -> POICandidate:
        raise BackendUnavailable(
            f"{self.name()} does not accept image input", backend=self.name()
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Load the model if it is not already resident."""
        async with self._lock:
            await self._load_locked()

    async def unload(self) -> None:
        """Free the model. Safe to call when nothing is loaded."""
        async with self._lock:
            if self._state is BackendState.UNLOADED:
                return
            try:
                await self._runtime.close()
            finally:
                self._state = BackendState.UNLOADED
            logger.info("poikit | backend=%s | model unloaded", self.name())

    async def _load_locked(self) -> None:
        if self._state is BackendState.READY:
            return

        self._state = BackendState.LOADING
        try:
            await self._runtime.load()
        except BackendError:
            self._state = BackendState.UNLOADED
            raise
        except Exception as exc:
            self._state = BackendState.UNLOADED
            raise ModelNotLoaded(
                f"model load failed: {exc}", backend=self.name()
            ) from exc
        self._state = BackendState.READY
        logger.info("poikit | backend=%s | model loaded", self.name())

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate(self, prompt: str, image_bytes: bytes | None = None) -> str:
        """Run one generation and return the raw completion text.

        Loads the model first when needed (one attempt).  The runtime is
        reset on every exit path, including cancellation.

        Raises:
            ModelNotLoaded: If the model could not be loaded.
            ExtractionFailed: On runtime failure, an empty completion, or
                when the polling ceiling is reached (reason ``"timeout"``).
        """
        async with self._lock:
            if self._state is not BackendState.READY:
                await self._load_locked()

            self._state = BackendState.GENERATING
            try:
                await self._runtime.start(prompt, image_bytes)
                return await self._wait_for_output()
            except BackendError:
                raise
            except Exception as exc:
                raise ExtractionFailed(str(exc), backend=self.name()) from exc
            finally:
                try:
                    await self._runtime.reset()
                finally:
                    self._state = BackendState.READY

    async def _wait_for_output(self) -> str:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._config.generation_timeout_seconds

        while True:
            status = await self._runtime.poll()
            if status.state is GenerationState.COMPLETED:
                if not status.output.strip():
                    raise ExtractionFailed("empty response", backend=self.name())
                return status.output
            if status.state is GenerationState.FAILED:
                raise ExtractionFailed(
                    status.error or "generation failed", backend=self.name()
                )
            if loop.time() >= deadline:
                logger.warning(
                    "poikit | backend=%s | code=%s | detail=no output after %.1fs",
                    self.name(),
                    POIErrorCode.E_EXTRACTION_TIMEOUT.value,
                    self._config.generation_timeout_seconds,
                )
                raise ExtractionFailed("timeout", backend=self.name())
            await asyncio.sleep(self._config.poll_interval_seconds)

    def _parse(
        self,
        raw: str,
        *,
        bonus: float = 0.0,
        plain_text_fallback: bool = False,
    ) -> POICandidate:
        return parse_logged(
            self._parser,
            raw,
            backend=self.name(),
            log_responses=self._config.log_responses,
            bonus=bonus,
            plain_text_fallback=plain_text_fallback,
        )


def parse_logged(
    parser: ResponseParser,
    raw: str,
    *,
    backend: str,
    log_responses: bool = False,
    bonus: float = 0.0,
    plain_text_fallback: bool = False,
) -> POICandidate:
    """Parse a completion and log which degradation, if any, applied."""
    candidate, code = parser.parse_outcome(
        raw, bonus=bonus, plain_text_fallback=plain_text_fallback
    )
    if code is not None:
        logger.warning(
            "poikit | backend=%s | code=%s | detail=response degraded, confidence=%.2f",
            backend,
            code.value,
            candidate.confidence,
        )
    if log_responses:
        logger.debug("poikit | backend=%s | raw response: %s", backend, raw)
    return candidate
