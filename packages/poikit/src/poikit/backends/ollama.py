"""Ollama implementation of the GenerationRuntime protocol.

Talks to a local Ollama server over its HTTP API.  A generation runs as a
background task started by ``start()`` and observed through ``poll()``;
``reset()`` cancels it.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any

import httpx

from poikit.config import POIExtractorConfig
from poikit.protocols import GenerationState, GenerationStatus

logger = logging.getLogger("poikit")


class OllamaRuntime:
    """Ollama-backed generation runtime.

    Satisfies :class:`~poikit.protocols.GenerationRuntime` via structural
    subtyping (no inheritance required).

    Parameters
    ----------
    model:
        Ollama model tag (e.g. ``"gemma2:2b"``).
    temperature:
        Sampling temperature sent with every generation.
    config:
        Pipeline configuration providing URL, timeout and retry settings.
    client:
        Optional ``httpx.AsyncClient``.  When omitted the runtime creates
        and owns one.
    """

    def __init__(
        self,
        model: str,
        temperature: float = 0.1,
        config: POIExtractorConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or POIExtractorConfig()
        self._model = model
        self._temperature = temperature
        self._base_url = self._config.ollama_base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None
        self._task: asyncio.Task[dict[str, Any]] | None = None

    @classmethod
    def for_local(
        cls,
        config: POIExtractorConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> OllamaRuntime:
        config = config or POIExtractorConfig()
        return cls(config.local_model, config.local_temperature, config, client)

    @classmethod
    def for_vision(
        cls,
        config: POIExtractorConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> OllamaRuntime:
        config = config or POIExtractorConfig()
        return cls(config.vision_model, config.vision_temperature, config, client)

    def model_name(self) -> str:
        return self._model

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Send a POST request to Ollama and return the JSON response.

        Retries on connection/timeout/status errors using the configured
        retry settings.
        """
        url = f"{self._base_url}{endpoint}"
        timeout = self._config.generation_timeout_seconds

        last_exc: Exception | None = None
        max_attempts = 1 + self._config.backend_max_retries

        for attempt in range(max_attempts):
            try:
                response = await self._get_client().post(url, json=payload, timeout=timeout)
                response.raise_for_status()
                return response.json()
            except (httpx.TimeoutException, httpx.ConnectError, httpx.HTTPStatusError) as exc:
                last_exc = exc
                if attempt < max_attempts - 1:
                    sleep_time = self._config.backend_backoff_base * (2 ** attempt)
                    logger.warning(
                        "Ollama request failed (attempt %d/%d): %s, retrying in %.1fs",
                        attempt + 1,
                        max_attempts,
                        exc,
                        sleep_time,
                    )
                    await asyncio.sleep(sleep_time)

        if isinstance(last_exc, httpx.TimeoutException):
            raise TimeoutError(
                f"Ollama request timed out after {max_attempts} attempts: {last_exc}"
            ) from last_exc

        raise ConnectionError(
            f"Ollama request failed after {max_attempts} attempts: {last_exc}"
        ) from last_exc

    # ------------------------------------------------------------------
    # Protocol methods
    # ------------------------------------------------------------------

    async def is_available(self) -> bool:
        """Return True if the server is reachable and has the model pulled."""
        try:
            response = await self._get_client().get(
                f"{self._base_url}/api/tags", timeout=5.0
            )
            response.raise_for_status()
            models = response.json().get("models", [])
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("poikit | ollama | tags lookup failed: %s", exc)
            return False

        names = {m.get("name") for m in models if isinstance(m, dict)}
        return self._model in names or f"{self._model}:latest" in names

    async def load(self) -> None:
        """Ask the server to load the model into memory."""
        await self._post("/api/generate", {"model": self._model, "keep_alive": "5m"})

    async def start(self, prompt: str, image_bytes: bytes | None = None) -> None:
        if self._task is not None and not self._task.done():
            raise RuntimeError("a generation is already in progress")

        payload: dict[str, Any] = {
            "model": self._model,
            "prompt": prompt,
            "stream": False,
            "raw": "<start_of_turn>" in prompt,
            "options": {
                "temperature": self._temperature,
                "num_predict": self._config.max_new_tokens,
                "num_ctx": self._config.context_length,
            },
        }
        if image_bytes is not None:
            payload["images"] = [base64.b64encode(image_bytes).decode("ascii")]

        self._task = asyncio.create_task(self._post("/api/generate", payload))

    async def poll(self) -> GenerationStatus:
        task = self._task
        if task is None:
            return GenerationStatus(state=GenerationState.FAILED, error="no generation started")
        if not task.done():
            return GenerationStatus(state=GenerationState.RUNNING)
        if task.cancelled():
            return GenerationStatus(state=GenerationState.FAILED, error="generation cancelled")

        exc = task.exception()
        if exc is not None:
            return GenerationStatus(state=GenerationState.FAILED, error=str(exc))
        return GenerationStatus(
            state=GenerationState.COMPLETED,
            output=str(task.result().get("response", "")),
        )

    async def reset(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def close(self) -> None:
        await self.reset()
        try:
            await self._post("/api/generate", {"model": self._model, "keep_alive": 0})
        except (TimeoutError, ConnectionError, httpx.HTTPError) as exc:
            logger.warning("poikit | ollama | model=%s | unload failed: %s", self._model, exc)
        finally:
            if self._owns_client and self._client is not None:
                await self._client.aclose()
                self._client = None
