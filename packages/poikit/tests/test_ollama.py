"""Tests for OllamaRuntime with a mocked HTTP transport."""

from __future__ import annotations

import asyncio
import base64
import json

import httpx
import pytest

from poikit.backends import LocalModelBackend, OllamaRuntime
from poikit.config import POIExtractorConfig
from poikit.protocols import GenerationRuntime, GenerationState


class OllamaHandler:
    """Fake Ollama server for ``/api/tags`` and ``/api/generate``."""

    def __init__(
        self,
        models: list[str] | None = None,
        response: str = '{"name": "焼肉 牛兵衛"}',
        failures: int = 0,
        delay: float = 0.0,
    ) -> None:
        self.models = models if models is not None else ["gemma2:2b", "minicpm-v:latest"]
        self.response = response
        self.failures = failures
        self.delay = delay
        self.generate_payloads: list[dict] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": m} for m in self.models]})

        payload = json.loads(request.content)
        self.generate_payloads.append(payload)
        if self.failures > 0:
            self.failures -= 1
            return httpx.Response(503, json={"error": "loading"})
        if self.delay:
            await asyncio.sleep(self.delay)
        if "prompt" not in payload:
            return httpx.Response(200, json={"model": payload["model"], "done": True})
        return httpx.Response(200, json={"response": self.response, "done": True})


def _runtime(handler: OllamaHandler, model: str = "gemma2:2b", **overrides) -> OllamaRuntime:
    config = POIExtractorConfig(backend_backoff_base=0.0, **overrides)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OllamaRuntime(model, config=config, client=client)


async def _wait_done(runtime: OllamaRuntime):
    for _ in range(100):
        status = await runtime.poll()
        if status.state is not GenerationState.RUNNING:
            return status
        await asyncio.sleep(0.01)
    raise AssertionError("generation did not finish")


@pytest.mark.unit
class TestOllamaAvailability:
    def test_satisfies_protocol(self):
        assert isinstance(OllamaRuntime("gemma2:2b"), GenerationRuntime)

    @pytest.mark.asyncio
    async def test_model_present(self):
        assert await _runtime(OllamaHandler()).is_available() is True

    @pytest.mark.asyncio
    async def test_latest_tag_matches_bare_name(self):
        runtime = _runtime(OllamaHandler(), model="minicpm-v")
        assert await runtime.is_available() is True

    @pytest.mark.asyncio
    async def test_model_missing(self):
        assert await _runtime(OllamaHandler(models=["llama3:8b"])).is_available() is False

    @pytest.mark.asyncio
    async def test_server_unreachable(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused")

        client = httpx.AsyncClient(transport=httpx.MockTransport(refuse))
        runtime = OllamaRuntime("gemma2:2b", client=client)
        assert await runtime.is_available() is False

    def test_factories_use_config_models(self):
        config = POIExtractorConfig(local_model="gemma3:1b", vision_model="llava:7b")
        assert OllamaRuntime.for_local(config).model_name() == "gemma3:1b"
        assert OllamaRuntime.for_vision(config).model_name() == "llava:7b"


@pytest.mark.unit
class TestOllamaGeneration:
    @pytest.mark.asyncio
    async def test_generate_completes(self):
        handler = OllamaHandler()
        runtime = _runtime(handler, max_new_tokens=256)

        await runtime.start("prompt text")
        status = await _wait_done(runtime)

        assert status.state is GenerationState.COMPLETED
        assert status.output == '{"name": "焼肉 牛兵衛"}'
        payload = handler.generate_payloads[0]
        assert payload["model"] == "gemma2:2b"
        assert payload["stream"] is False
        assert payload["options"]["num_predict"] == 256
        assert "images" not in payload

    @pytest.mark.asyncio
    async def test_image_attached_as_base64(self):
        handler = OllamaHandler()
        runtime = _runtime(handler)

        await runtime.start("describe", image_bytes=b"\xff\xd8jpeg")
        await _wait_done(runtime)

        assert handler.generate_payloads[0]["images"] == [
            base64.b64encode(b"\xff\xd8jpeg").decode("ascii")
        ]

    @pytest.mark.asyncio
    async def test_retries_transient_status(self):
        handler = OllamaHandler(failures=1)
        runtime = _runtime(handler, backend_max_retries=1)

        await runtime.start("p")
        status = await _wait_done(runtime)

        assert status.state is GenerationState.COMPLETED
        assert len(handler.generate_payloads) == 2

    @pytest.mark.asyncio
    async def test_exhausted_retries_report_failure(self):
        handler = OllamaHandler(failures=5)
        runtime = _runtime(handler, backend_max_retries=1)

        await runtime.start("p")
        status = await _wait_done(runtime)

        assert status.state is GenerationState.FAILED
        assert "2 attempts" in status.error

    @pytest.mark.asyncio
    async def test_reset_cancels_in_flight_generation(self):
        runtime = _runtime(OllamaHandler(delay=10.0))

        await runtime.start("p")
        assert (await runtime.poll()).state is GenerationState.RUNNING

        await runtime.reset()

        status = await runtime.poll()
        assert status.state is GenerationState.FAILED
        assert status.error == "no generation started"

    @pytest.mark.asyncio
    async def test_second_start_while_running_rejected(self):
        runtime = _runtime(OllamaHandler(delay=10.0))
        await runtime.start("p")
        with pytest.raises(RuntimeError):
            await runtime.start("q")
        await runtime.reset()


@pytest.mark.unit
class TestOllamaWithLocalBackend:
    @pytest.mark.asyncio
    async def test_end_to_end_text_extraction(self):
        handler = OllamaHandler(response='{"name": "焼肉 牛兵衛", "category": "焼肉店"}')
        config = POIExtractorConfig(backend_backoff_base=0.0, poll_interval_seconds=0.01)
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        backend = LocalModelBackend(OllamaRuntime.for_local(config, client), config)

        candidate = await backend.extract_from_text("焼肉 牛兵衛")

        assert candidate.name == "焼肉 牛兵衛"
        assert candidate.category == "焼肉店"
        load_payload, generate_payload = handler.generate_payloads
        assert "prompt" not in load_payload
        assert generate_payload["raw"] is True
        assert generate_payload["prompt"].startswith("<start_of_turn>user")


@pytest.mark.unit
class TestOllamaClose:
    @pytest.mark.asyncio
    async def test_owned_client_closed_when_unload_read_fails(self):
        def drop(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadError("connection reset")

        runtime = OllamaRuntime("gemma2:2b", config=POIExtractorConfig(backend_backoff_base=0.0))
        client = httpx.AsyncClient(transport=httpx.MockTransport(drop))
        runtime._client = client

        await runtime.close()

        assert client.is_closed
        assert runtime._client is None

    @pytest.mark.asyncio
    async def test_injected_client_left_open(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(OllamaHandler()))
        runtime = OllamaRuntime("gemma2:2b", client=client)

        await runtime.close()

        assert not client.is_closed
        await client.aclose()
