"""Backend bridging a platform on-device assistant session."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from poikit.backends.base import parse_logged
from poikit.config import POIExtractorConfig
from poikit.errors import BackendError, BackendUnavailable, ExtractionFailed, POIErrorCode
from poikit.models import BackendKind, ExtractionMode, POICandidate
from poikit.parser import ResponseParser
from poikit.prompts import build_correction_prompt, build_text_prompt

logger = logging.getLogger("poikit")

Responder = Callable[[str], Awaitable[str]]


class AssistantBackend:
    """Text extraction through an injected ``respond(prompt)`` coroutine.

    The assistant session is not re-entrant, so calls are serialized.
    Without a responder the backend reports itself unavailable.
    """

    kind = BackendKind.ASSISTANT

    def __init__(
        self,
        respond: Responder | None = None,
        config: POIExtractorConfig | None = None,
        parser: ResponseParser | None = None,
    ) -> None:
        self._respond = respond
        self._config = config or POIExtractorConfig()
        self._parser = parser or ResponseParser(self._config)
        self._lock = asyncio.Lock()

    def name(self) -> str:
        return self.kind.value

    def supports(self, mode: ExtractionMode) -> bool:
        return mode is ExtractionMode.TEXT

    async def is_available(self) -> bool:
        return self._respond is not None

    async def load(self) -> None:
        return None

    async def unload(self) -> None:
        return None

    async def extract_from_text(self, text: str) -> POICandidate:
        raw = await self._ask(build_text_prompt(text))
        return parse_logged(
            self._parser,
            raw,
            backend=self.name(),
            log_responses=self._config.log_responses,
            plain_text_fallback=True,
        )

    async def extract_from_image(self, image_bytes: bytes) -> POICandidate:
        raise BackendUnavailable(
            "assistant does not accept image input", backend=self.name()
        )

    async def correct_ocr_text(self, text: str) -> str:
        """Ask the assistant to fix OCR misreads.

        Returns the original text when the assistant is unavailable, fails,
        or answers with nothing.
        """
        corrected, _ = await self.correct_ocr_text_outcome(text)
        return corrected

    async def correct_ocr_text_outcome(self, text: str) -> tuple[str, POIErrorCode | None]:
        """Like :meth:`correct_ocr_text`, also reporting a failed call.

        Returns:
            A tuple of (text, ``W_OCR_CORRECTION_FAILED`` or None).
        """
        if not text.strip() or self._respond is None:
            return text, None
        try:
            corrected = await self._ask(build_correction_prompt(text))
        except BackendError as exc:
            logger.warning(
                "poikit | backend=%s | code=%s | detail=%s",
                self.name(),
                POIErrorCode.W_OCR_CORRECTION_FAILED.value,
                exc,
            )
            return text, POIErrorCode.W_OCR_CORRECTION_FAILED
        return corrected.strip() or text, None

    async def _ask(self, prompt: str) -> str:
        if self._respond is None:
            raise BackendUnavailable("no assistant session", backend=self.name())
        async with self._lock:
            try:
                return await self._respond(prompt)
            except BackendError:
                raise
            except Exception as exc:
                raise ExtractionFailed(str(exc), backend=self.name()) from exc
