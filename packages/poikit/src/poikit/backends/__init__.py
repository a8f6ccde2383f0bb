"""Concrete extractor backends and generation runtimes for poikit."""

from __future__ import annotations

from poikit.backends.assistant import AssistantBackend, Responder
from poikit.backends.base import ModelBackend, parse_logged
from poikit.backends.cloud import CloudAPIBackend
from poikit.backends.local import LocalModelBackend
from poikit.backends.ollama import OllamaRuntime
from poikit.backends.vision import VisionModelBackend

__all__ = [
    "ModelBackend",
    "CloudAPIBackend",
    "LocalModelBackend",
    "VisionModelBackend",
    "AssistantBackend",
    "Responder",
    "OllamaRuntime",
    "parse_logged",
]
