"""Cloud API backend over the Anthropic Messages API.

Requires an API key, taken from ``config.cloud_api_key`` or the
``ANTHROPIC_API_KEY`` environment variable.  The backend is stateless;
``load()`` and ``unload()`` are no-ops.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx
from PIL import UnidentifiedImageError

from poikit.backends.base import parse_logged
from poikit.config import POIExtractorConfig
from poikit.errors import BackendUnavailable, ExtractionFailed, InvalidResponse
from poikit.imaging import to_base64_jpeg
from poikit.models import BackendKind, ExtractionMode, POICandidate
from poikit.parser import ResponseParser
from poikit.prompts import (
    CLOUD_IMAGE_INSTRUCTION,
    CLOUD_SYSTEM_PROMPT,
    build_cloud_text_message,
)

logger = logging.getLogger("poikit")

API_KEY_ENV = "ANTHROPIC_API_KEY"


class CloudAPIBackend:
    """Text and image extraction through a hosted model.

    Parameters
    ----------
    config:
        Pipeline configuration providing endpoint, model and key.
    parser:
        Response parser; a default one is built from ``config``.
    client:
        Optional ``httpx.AsyncClient``.  When omitted the backend creates
        and owns one.
    """

    kind = BackendKind.CLOUD

    def __init__(
        self,
        config: POIExtractorConfig | None = None,
        parser: ResponseParser | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or POIExtractorConfig()
        self._parser = parser or ResponseParser(self._config)
        self._client = client
        self._owns_client = client is None

    def name(self) -> str:
        return self.kind.value

    def supports(self, mode: ExtractionMode) -> bool:
        return mode in (ExtractionMode.TEXT, ExtractionMode.IMAGE)

    def api_key(self) -> str | None:
        return self._config.cloud_api_key or os.environ.get(API_KEY_ENV) or None

    async def is_available(self) -> bool:
        return self.api_key() is not None

    async def load(self) -> None:
        return None

    async def unload(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    async def extract_from_text(self, text: str) -> POICandidate:
        raw = await self._send([{"type": "text", "text": build_cloud_text_message(text)}])
        return self._parse(raw)

    async def extract_from_image(self, image_bytes: bytes) -> POICandidate:
        try:
            data = to_base64_jpeg(
                image_bytes,
                quality=self._config.cloud_jpeg_quality,
                max_dimension=self._config.image_max_dimension,
            )
        except (UnidentifiedImageError, OSError) as exc:
            raise ExtractionFailed(
                f"image encoding failed: {exc}", backend=self.name()
            ) from exc

        content = [
            {
                "type": "image",
                "source": {"type": "base64", "media_type": "image/jpeg", "data": data},
            },
            {"type": "text", "text": CLOUD_IMAGE_INSTRUCTION},
        ]
        raw = await self._send(content)
        return self._parse(raw)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._config.cloud_timeout_seconds)
        return self._client

    async def _send(self, content: list[dict[str, Any]]) -> str:
        """POST one user turn and return the first text block of the reply."""
        key = self.api_key()
        if key is None:
            raise BackendUnavailable("API key is not configured", backend=self.name())

        headers = {
            "x-api-key": key,
            "anthropic-version": self._config.anthropic_version,
            "content-type": "application/json",
        }
        body = {
            "model": self._config.cloud_model,
            "max_tokens": self._config.cloud_max_tokens,
            "system": CLOUD_SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": content}],
        }

        logger.debug(
            "poikit | backend=%s | model=%s | POST %s",
            self.name(),
            self._config.cloud_model,
            self._config.cloud_api_url,
        )
        try:
            response = await self._get_client().post(
                self._config.cloud_api_url,
                headers=headers,
                json=body,
                timeout=self._config.cloud_timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            raise ExtractionFailed("timeout", backend=self.name()) from exc
        except httpx.HTTPError as exc:
            raise ExtractionFailed(f"network error: {exc}", backend=self.name()) from exc

        if response.status_code == 401:
            raise ExtractionFailed("invalid API key", backend=self.name())
        if response.status_code == 429:
            raise ExtractionFailed("rate limited", backend=self.name())
        if response.status_code != 200:
            raise ExtractionFailed(
                f"API error: {response.status_code}", backend=self.name()
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise InvalidResponse("response body is not JSON", backend=self.name()) from exc

        blocks = payload.get("content") if isinstance(payload, dict) else None
        for block in blocks or []:
            if isinstance(block, dict) and block.get("type") == "text":
                return str(block.get("text") or "")

        raise InvalidResponse("no text block in response", backend=self.name())

    def _parse(self, raw: str) -> POICandidate:
        return parse_logged(
            self._parser,
            raw,
            backend=self.name(),
            log_responses=self._config.log_responses,
        )
