"""Configuration model for the poikit extraction pipeline.

Provides ``POIExtractorConfig`` with all tunable parameters and sensible
defaults.  Supports loading overrides from YAML or JSON files via the
``from_file()`` classmethod.
"""

from __future__ import annotations

import json
import pathlib

import yaml
from pydantic import BaseModel

from poikit.models import BackendKind, ExtractionPolicy


class POIExtractorConfig(BaseModel):
    """All tunable parameters with sensible defaults.

    Override individual values via constructor kwargs or load a complete
    config from a file with ``POIExtractorConfig.from_file(path)``.
    """

    # --- Policy ---
    policy: ExtractionPolicy = ExtractionPolicy.AUTO
    auto_priority: list[BackendKind] = [
        BackendKind.CLOUD,
        BackendKind.VISION,
        BackendKind.LOCAL,
        BackendKind.ASSISTANT,
    ]

    # --- Timing ---
    generation_timeout_seconds: float = 60.0
    poll_interval_seconds: float = 0.1
    backend_call_timeout_seconds: float = 90.0

    # --- Confidence ---
    image_confidence_bonus: float = 0.2
    parse_failure_confidence: float = 0.1
    plain_text_confidence: float = 0.3

    # --- Rule-based extraction ---
    max_name_lines: int = 3

    # --- Cloud API ---
    cloud_api_url: str = "https://api.anthropic.com/v1/messages"
    cloud_api_key: str | None = None  # falls back to ANTHROPIC_API_KEY
    cloud_model: str = "claude-sonnet-4-5-20250929"
    cloud_max_tokens: int = 1024
    cloud_timeout_seconds: float = 30.0
    anthropic_version: str = "2023-06-01"

    # --- Image encoding ---
    image_max_dimension: int = 1568
    cloud_jpeg_quality: int = 92
    vision_jpeg_quality: int = 80

    # --- Local / vision models ---
    ollama_base_url: str = "http://localhost:11434"
    local_model_path: str | None = None  # model file must exist when set
    local_model: str = "gemma2:2b"
    vision_model: str = "minicpm-v"
    local_temperature: float = 0.1
    vision_temperature: float = 0.3
    max_new_tokens: int = 512
    context_length: int = 4096

    # --- Backend Resilience ---
    backend_max_retries: int = 1
    backend_backoff_base: float = 1.0

    # --- OCR ---
    correct_ocr_text: bool = False

    # --- Logging / PII Safety ---
    log_responses: bool = False
    log_sample_data: bool = False

    @classmethod
    def from_file(cls, path: str | pathlib.Path) -> POIExtractorConfig:
        """Build a config from a ``.yaml``/``.yml`` or ``.json`` file over the defaults."""
        file_path = pathlib.Path(path)
        if not file_path.is_file():
            raise FileNotFoundError(f"Config file not found: {path}")

        loaders = {".yaml": yaml.safe_load, ".yml": yaml.safe_load, ".json": json.loads}
        suffix = file_path.suffix.lower()
        if suffix not in loaders:
            raise ValueError(
                f"Unsupported config file extension '{suffix}'. "
                "Use .yaml, .yml, or .json."
            )

        data = loaders[suffix](file_path.read_text(encoding="utf-8"))
        return cls(**(data or {}))
