"""Policy-driven POI extraction pipeline.

``ExtractionOrchestrator`` is the single entry point:

1. **Image phase** -- when an image is given, each selected image-capable
   backend is tried in order; the first valid candidate wins outright.
2. **Text phase** -- OCR text (given, or read through the OCR
   collaborator) is run through the rule extractor, then each selected
   text-capable backend is tried in order; the first valid model
   candidate is merged over the rule candidate.
3. Otherwise the rule candidate is the result.

Backend failures are absorbed per call and recorded as
``BackendAttempt`` entries; expected negative results are reported via
``OutcomeStatus`` rather than exceptions.  Cancellation is never absorbed.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Iterable, Sequence

from poikit.config import POIExtractorConfig
from poikit.errors import BackendError, ExtractionFailed, POIErrorCode, POIExtractError
from poikit.merge import Merger
from poikit.models import (
    BackendAttempt,
    BackendKind,
    BatchItem,
    BatchSummary,
    ExtractionMode,
    ExtractionOutcome,
    ExtractionPolicy,
    OutcomeStatus,
    POICandidate,
    POIRecord,
)
from poikit.protocols import ExtractorBackend, OCRBackend, POIStore
from poikit.rules import FieldExtractor

logger = logging.getLogger("poikit")


class _Run:
    """Mutable bookkeeping for one ``extract()`` call."""

    def __init__(self) -> None:
        self.started = time.monotonic()
        self.attempts: list[BackendAttempt] = []
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.error_details: list[POIExtractError] = []
        self.runnable = False

    def fail(self, detail: POIExtractError) -> None:
        self.errors.append(detail.code)
        self.error_details.append(detail)


class ExtractionOrchestrator:
    """Run the extraction policy over injected backends.

    Parameters
    ----------
    backends:
        Backend handles; looked up by ``kind``.  The first handle of a
        kind wins.
    config:
        Pipeline configuration.  Defaults are used when omitted.
    ocr:
        Optional text recognition collaborator, used when an image is
        given without text.
    field_extractor:
        Rule-based extractor; a default one is built from ``config``.
    merger:
        Rule/model merger.
    """

    def __init__(
        self,
        backends: Sequence[ExtractorBackend] = (),
        config: POIExtractorConfig | None = None,
        ocr: OCRBackend | None = None,
        field_extractor: FieldExtractor | None = None,
        merger: Merger | None = None,
    ) -> None:
        self._config = config or POIExtractorConfig()
        self._backends: dict[BackendKind, ExtractorBackend] = {}
        for backend in backends:
            self._backends.setdefault(backend.kind, backend)
        self._ocr = ocr
        self._rules = field_extractor or FieldExtractor(self._config.max_name_lines)
        self._merger = merger or Merger()

    @property
    def config(self) -> POIExtractorConfig:
        return self._config

    def backend(self, kind: BackendKind) -> ExtractorBackend | None:
        return self._backends.get(kind)

    def selected_backends(
        self, policy: ExtractionPolicy | None = None
    ) -> list[ExtractorBackend]:
        """Backends the policy allows, in the order they are tried."""
        policy = policy or self._config.policy
        if policy is ExtractionPolicy.NONE:
            return []
        if policy is ExtractionPolicy.AUTO:
            return [
                self._backends[kind]
                for kind in self._config.auto_priority
                if kind in self._backends
            ]
        backend = self._backends.get(policy.backend_kind())
        return [backend] if backend is not None else []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def available_backend_name(
        self, policy: ExtractionPolicy | None = None
    ) -> str | None:
        """Name of the first backend the policy would actually run."""
        for backend in self.selected_backends(policy):
            if await self._check_available(backend):
                return backend.name()
        return None

    async def load_backends(self) -> None:
        """Load every available backend up front. Failures are logged."""
        for backend in self._backends.values():
            if not await self._check_available(backend):
                continue
            try:
                await backend.load()
            except BackendError as exc:
                logger.warning(
                    "poikit | backend=%s | code=%s | detail=%s",
                    backend.name(),
                    exc.error.code,
                    exc,
                )

    async def unload_backends(self) -> None:
        for backend in self._backends.values():
            await backend.unload()

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    async def extract(
        self,
        image: bytes | None = None,
        text: str | None = None,
        policy: ExtractionPolicy | None = None,
    ) -> ExtractionOutcome:
        """Extract a POI from an image, OCR text, or both.

        Args:
            image: Encoded image bytes (JPEG/PNG).
            text: OCR text with lines in top-to-bottom order.  Read from
                the OCR collaborator when omitted and an image is given.
            policy: Overrides ``config.policy`` for this call.

        Returns:
            An ``ExtractionOutcome``; never raises for backend failures.
        """
        policy = policy or self._config.policy
        run = _Run()
        selected = self.selected_backends(policy)

        if policy is not ExtractionPolicy.NONE and not selected:
            logger.info(
                "poikit | policy=%s | code=%s | detail=no backend configured",
                policy.value,
                POIErrorCode.W_BACKEND_SKIPPED.value,
            )
            run.warnings.append(POIErrorCode.W_BACKEND_SKIPPED.value)

        # --- Image phase ---
        if image is not None:
            for backend in selected:
                if not backend.supports(ExtractionMode.IMAGE):
                    continue
                candidate = await self._attempt(backend, ExtractionMode.IMAGE, image, run)
                if candidate is not None and candidate.has_valid_data:
                    return self._finish(
                        run,
                        candidate,
                        used_model=True,
                        source=f"{backend.name()}:image",
                        ocr_text=text,
                    )

        # --- Text phase ---
        ocr_text = text
        if ocr_text is None and image is not None:
            ocr_text = await self._recognize(image, run)
        if ocr_text is None:
            return self._finish(
                run, POICandidate.empty(), used_model=False, source="none", ocr_text=None
            )

        if policy is not ExtractionPolicy.NONE:
            ocr_text = await self._maybe_correct(ocr_text, run)

        if self._config.log_sample_data:
            logger.debug("poikit | ocr text: %s", ocr_text)

        rule_candidate = self._rules.extract(ocr_text)

        for backend in selected:
            if not backend.supports(ExtractionMode.TEXT):
                continue
            candidate = await self._attempt(backend, ExtractionMode.TEXT, ocr_text, run)
            if candidate is not None and candidate.has_valid_data:
                return self._finish(
                    run,
                    self._merger.merge(rule_candidate, candidate),
                    used_model=True,
                    source=f"{backend.name()}:text+rule",
                    ocr_text=ocr_text,
                )

        return self._finish(
            run, rule_candidate, used_model=False, source="rule", ocr_text=ocr_text
        )

    async def extract_and_store(
        self,
        store: POIStore,
        key: str,
        image: bytes | None = None,
        text: str | None = None,
        policy: ExtractionPolicy | None = None,
    ) -> ExtractionOutcome:
        """Extract and, when the result is valid, persist it under ``key``.

        Store failures propagate to the caller.
        """
        outcome = await self.extract(image=image, text=text, policy=policy)
        if outcome.status is OutcomeStatus.SUCCESS:
            await store.save(POIRecord.from_candidate(outcome.candidate), key)
        return outcome

    async def extract_batch(
        self,
        items: Iterable[BatchItem],
        store: POIStore | None = None,
        policy: ExtractionPolicy | None = None,
    ) -> BatchSummary:
        """Extract each item in turn and save the valid ones.

        Store failures are logged and recorded on the item's outcome.
        """
        outcomes: dict[str, ExtractionOutcome] = {}
        saved = 0

        for item in items:
            outcome = await self.extract(text=item.text, policy=policy)
            outcomes[item.key] = outcome
            if store is None or outcome.status is not OutcomeStatus.SUCCESS:
                continue
            try:
                await store.save(POIRecord.from_candidate(outcome.candidate), item.key)
            except Exception as exc:
                logger.error(
                    "poikit | key=%s | code=%s | detail=%s",
                    item.key,
                    POIErrorCode.E_STORE_FAILED.value,
                    exc,
                )
                outcome.errors.append(POIErrorCode.E_STORE_FAILED.value)
                outcome.error_details.append(
                    POIExtractError(
                        code=POIErrorCode.E_STORE_FAILED.value,
                        message=str(exc),
                        stage="store",
                        recoverable=True,
                    )
                )
            else:
                saved += 1

        logger.info(
            "poikit | batch | total=%d | saved=%d", len(outcomes), saved
        )
        return BatchSummary(total=len(outcomes), saved=saved, outcomes=outcomes)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _check_available(self, backend: ExtractorBackend) -> bool:
        try:
            return await backend.is_available()
        except Exception as exc:
            logger.warning(
                "poikit | backend=%s | availability check failed: %s",
                backend.name(),
                exc,
            )
            return False

    async def _attempt(
        self,
        backend: ExtractorBackend,
        mode: ExtractionMode,
        payload: bytes | str,
        run: _Run,
    ) -> POICandidate | None:
        """Call one backend and record the attempt. Never raises on failure."""
        name = backend.name()

        if not await self._check_available(backend):
            logger.info(
                "poikit | backend=%s | code=%s | detail=unavailable, skipping",
                name,
                POIErrorCode.E_BACKEND_UNAVAILABLE.value,
            )
            run.attempts.append(
                BackendAttempt(
                    backend=backend.kind,
                    mode=mode,
                    success=False,
                    error_code=POIErrorCode.E_BACKEND_UNAVAILABLE.value,
                    message="backend unavailable",
                )
            )
            run.warnings.append(POIErrorCode.W_BACKEND_SKIPPED.value)
            return None

        run.runnable = True
        started = time.monotonic()
        if mode is ExtractionMode.IMAGE:
            call = backend.extract_from_image(payload)  # type: ignore[arg-type]
        else:
            call = backend.extract_from_text(payload)  # type: ignore[arg-type]

        detail: POIExtractError | None = None
        candidate: POICandidate | None = None
        try:
            candidate = await asyncio.wait_for(
                call, timeout=self._config.backend_call_timeout_seconds
            )
        except asyncio.TimeoutError:
            detail = ExtractionFailed("timeout", backend=name).error
        except BackendError as exc:
            detail = exc.error
            if detail.backend is None:
                detail = detail.model_copy(update={"backend": name})
        except Exception as exc:
            detail = ExtractionFailed(str(exc), backend=name).error

        duration = time.monotonic() - started

        if detail is not None:
            logger.warning(
                "poikit | backend=%s | code=%s | detail=%s",
                name,
                detail.code,
                detail.message,
            )
            run.fail(detail)
            run.attempts.append(
                BackendAttempt(
                    backend=backend.kind,
                    mode=mode,
                    success=False,
                    error_code=detail.code,
                    message=detail.message,
                    duration_seconds=duration,
                )
            )
            return None

        logger.info(
            "poikit | backend=%s | mode=%s | valid=%s | confidence=%.2f | %.2fs",
            name,
            mode.value,
            candidate.has_valid_data,
            candidate.confidence,
            duration,
        )
        run.attempts.append(
            BackendAttempt(
                backend=backend.kind,
                mode=mode,
                success=True,
                has_valid_data=candidate.has_valid_data,
                confidence=candidate.confidence,
                duration_seconds=duration,
            )
        )
        return candidate

    async def _recognize(self, image: bytes, run: _Run) -> str | None:
        if self._ocr is None:
            return None
        try:
            lines = await self._ocr.recognize_lines(image)
        except Exception as exc:
            logger.warning(
                "poikit | ocr | code=%s | detail=%s",
                POIErrorCode.E_OCR_FAILED.value,
                exc,
            )
            run.fail(
                POIExtractError(
                    code=POIErrorCode.E_OCR_FAILED.value,
                    message=str(exc),
                    stage="ocr",
                    recoverable=True,
                )
            )
            return None
        return "\n".join(lines)

    async def _maybe_correct(self, ocr_text: str, run: _Run) -> str:
        if not self._config.correct_ocr_text:
            return ocr_text
        assistant = self._backends.get(BackendKind.ASSISTANT)
        correct = getattr(assistant, "correct_ocr_text_outcome", None)
        if correct is None or not await self._check_available(assistant):
            return ocr_text
        try:
            corrected, code = await asyncio.wait_for(
                correct(ocr_text), timeout=self._config.backend_call_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(
                "poikit | backend=%s | code=%s | detail=timed out after %.1fs",
                assistant.name(),
                POIErrorCode.W_OCR_CORRECTION_FAILED.value,
                self._config.backend_call_timeout_seconds,
            )
            corrected, code = ocr_text, POIErrorCode.W_OCR_CORRECTION_FAILED
        if code is not None:
            run.warnings.append(code.value)
        return corrected

    def _finish(
        self,
        run: _Run,
        candidate: POICandidate,
        *,
        used_model: bool,
        source: str,
        ocr_text: str | None,
    ) -> ExtractionOutcome:
        if candidate.has_valid_data:
            status = OutcomeStatus.SUCCESS
        elif not run.runnable:
            status = OutcomeStatus.NOT_AVAILABLE
            run.errors.append(POIErrorCode.E_NOT_AVAILABLE.value)
        else:
            status = OutcomeStatus.NO_VALID_DATA
            run.errors.append(POIErrorCode.E_NO_VALID_DATA.value)

        elapsed = time.monotonic() - run.started
        logger.info(
            "poikit | status=%s | source=%s | used_model=%s | fields=%d | %.2fs",
            status.value,
            source,
            used_model,
            candidate.field_count,
            elapsed,
        )
        return ExtractionOutcome(
            candidate=candidate,
            used_model=used_model,
            status=status,
            source=source,
            ocr_text=ocr_text,
            attempts=run.attempts,
            errors=run.errors,
            warnings=run.warnings,
            error_details=run.error_details,
            processing_time_seconds=elapsed,
        )
