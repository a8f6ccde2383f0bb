"""Shared fixtures for poikit tests."""

from __future__ import annotations

import asyncio
import io

import pytest
from PIL import Image

from poikit.config import POIExtractorConfig
from poikit.models import BackendKind, ExtractionMode, POICandidate, POIRecord
from poikit.protocols import GenerationState, GenerationStatus


# ---------------------------------------------------------------------------
# Mock Backend Classes
# ---------------------------------------------------------------------------


class MockBackend:
    """Mock extractor satisfying the ExtractorBackend protocol."""

    def __init__(
        self,
        kind: BackendKind,
        text_candidate: POICandidate | None = None,
        image_candidate: POICandidate | None = None,
        available: bool = True,
        modes: tuple[ExtractionMode, ...] = (ExtractionMode.TEXT, ExtractionMode.IMAGE),
        raise_on_extract: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self._kind = kind
        self._text_candidate = text_candidate or POICandidate.empty()
        self._image_candidate = image_candidate or POICandidate.empty()
        self._available = available
        self._modes = modes
        self._raise_on_extract = raise_on_extract
        self._delay = delay
        self.text_calls: list[str] = []
        self.image_calls: list[bytes] = []
        self.loaded = False

    @property
    def kind(self) -> BackendKind:
        return self._kind

    def name(self) -> str:
        return self._kind.value

    def supports(self, mode: ExtractionMode) -> bool:
        return mode in self._modes

    async def is_available(self) -> bool:
        return self._available

    async def extract_from_text(self, text: str) -> POICandidate:
        self.text_calls.append(text)
        return await self._respond(self._text_candidate)

    async def extract_from_image(self, image_bytes: bytes) -> POICandidate:
        self.image_calls.append(image_bytes)
        return await self._respond(self._image_candidate)

    async def load(self) -> None:
        self.loaded = True

    async def unload(self) -> None:
        self.loaded = False

    async def _respond(self, candidate: POICandidate) -> POICandidate:
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._raise_on_extract is not None:
            raise self._raise_on_extract
        return candidate


class MockRuntime:
    """Scripted GenerationRuntime.

    ``statuses`` are returned by successive ``poll()`` calls; the last one
    repeats.  ``hang=True`` keeps reporting RUNNING forever.
    """

    def __init__(
        self,
        output: str = '{"name": "テスト食堂"}',
        available: bool = True,
        hang: bool = False,
        fail_load: Exception | None = None,
        statuses: list[GenerationStatus] | None = None,
    ) -> None:
        self._output = output
        self._available = available
        self._hang = hang
        self._fail_load = fail_load
        self._statuses = statuses
        self.load_calls = 0
        self.start_calls: list[tuple[str, bytes | None]] = []
        self.poll_calls = 0
        self.reset_calls = 0
        self.close_calls = 0

    async def is_available(self) -> bool:
        return self._available

    async def load(self) -> None:
        self.load_calls += 1
        if self._fail_load is not None:
            raise self._fail_load

    async def start(self, prompt: str, image_bytes: bytes | None = None) -> None:
        self.start_calls.append((prompt, image_bytes))

    async def poll(self) -> GenerationStatus:
        self.poll_calls += 1
        if self._hang:
            return GenerationStatus(state=GenerationState.RUNNING)
        if self._statuses:
            index = min(self.poll_calls - 1, len(self._statuses) - 1)
            return self._statuses[index]
        return GenerationStatus(state=GenerationState.COMPLETED, output=self._output)

    async def reset(self) -> None:
        self.reset_calls += 1

    async def close(self) -> None:
        self.close_calls += 1


class MockOCR:
    """Mock OCRBackend returning fixed lines."""

    def __init__(self, lines: list[str] | None = None, error: Exception | None = None) -> None:
        self._lines = lines or []
        self._error = error
        self.calls = 0

    async def recognize_lines(self, image_bytes: bytes) -> list[str]:
        self.calls += 1
        if self._error is not None:
            raise self._error
        return list(self._lines)


class MockStore:
    """Mock POIStore recording saved records."""

    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.saved: dict[str, POIRecord] = {}
        self._fail_on = fail_on or set()

    async def save(self, record: POIRecord, key: str) -> None:
        if key in self._fail_on:
            raise RuntimeError(f"store rejected {key}")
        self.saved[key] = record


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def poi_config() -> POIExtractorConfig:
    """Config with a short polling ceiling so timeouts resolve quickly."""
    return POIExtractorConfig(
        generation_timeout_seconds=0.2,
        poll_interval_seconds=0.01,
        backend_call_timeout_seconds=2.0,
        backend_backoff_base=0.0,
    )


@pytest.fixture
def curry_text() -> str:
    return "アパ社長カレー\n横浜ベイタワー店\nTEL 045-123-4567"


@pytest.fixture
def cafe_text() -> str:
    return "東京都港区\n六本木1-2-3\nカフェ ABC"


@pytest.fixture
def sample_image_bytes() -> bytes:
    """A small RGB PNG image."""
    img = Image.new("RGB", (64, 48), color=(200, 40, 40))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def large_rgba_image_bytes() -> bytes:
    """A 3000x1000 RGBA PNG image."""
    img = Image.new("RGBA", (3000, 1000), color=(0, 128, 255, 128))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
