"""On-device text model backend (Gemma-style instruct model)."""

from __future__ import annotations

import pathlib

from poikit.backends.base import ModelBackend
from poikit.models import BackendKind, ExtractionMode, POICandidate
from poikit.prompts import build_local_prompt


class LocalModelBackend(ModelBackend):
    """Text-only extraction with a small local model.

    Small models often answer in labelled lines instead of JSON, so the
    plain-text fallback is enabled when parsing.
    """

    kind = BackendKind.LOCAL
    modes = frozenset({ExtractionMode.TEXT})

    async def is_available(self) -> bool:
        model_path = self._config.local_model_path
        if model_path is not None:
            return pathlib.Path(model_path).is_file()
        return await self._runtime.is_available()

    async def extract_from_text(self, text: str) -> POICandidate:
        raw = await self.generate(build_local_prompt(text))
        return self._parse(raw, plain_text_fallback=True)
