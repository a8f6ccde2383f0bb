"""Defensive parsing of free-form model output into a ``POICandidate``.

Model completions are *intended* to be a single JSON object, but arrive
wrapped in Markdown fences, surrounded by prose, or malformed.  The
parser never raises: an unparseable answer degrades to an empty
candidate with a fixed low confidence, or to the labelled-line
plain-text fallback when the caller asks for it.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from poikit.config import POIExtractorConfig
from poikit.errors import POIErrorCode
from poikit.models import POICandidate
from poikit.patterns import PLAIN_TEXT_PATTERNS

logger = logging.getLogger("poikit")

_JSON_FENCE = re.compile(r"```json(.*?)```", re.DOTALL | re.IGNORECASE)
_ANY_FENCE = re.compile(r"```(.*?)```", re.DOTALL)


# ---------------------------------------------------------------------------
# Model Response Schema
# ---------------------------------------------------------------------------


class ModelPOIResponse(BaseModel):
    """Schema for the six-key object a backend is asked to return.

    Extra keys are ignored.  Values that are not strings are dropped
    rather than rejected so one odd field does not discard the rest.
    """

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    address: str | None = None
    phone: str | None = None
    hours: str | None = None
    category: str | None = None
    priceRange: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _strings_only(cls, value: Any) -> Any:
        return value if isinstance(value, str) else None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def extract_json_block(raw: str) -> str:
    """Isolate the JSON object inside a model completion.

    Prefers a ```json fence, then any fence, then the raw text; then
    slices from the first ``{`` to the last ``}`` inclusive.
    """
    match = _JSON_FENCE.search(raw) or _ANY_FENCE.search(raw)
    body = match.group(1) if match else raw

    start = body.find("{")
    end = body.rfind("}")
    if start != -1 and end > start:
        body = body[start : end + 1]
    return body.strip()


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class ResponseParser:
    """Turn raw backend text into a validated candidate."""

    def __init__(self, config: POIExtractorConfig | None = None) -> None:
        self._config = config or POIExtractorConfig()

    def parse(
        self,
        raw: str,
        *,
        bonus: float = 0.0,
        plain_text_fallback: bool = False,
    ) -> POICandidate:
        """Parse ``raw`` into a candidate. Never raises."""
        candidate, _code = self.parse_outcome(
            raw, bonus=bonus, plain_text_fallback=plain_text_fallback
        )
        return candidate

    def parse_outcome(
        self,
        raw: str,
        *,
        bonus: float = 0.0,
        plain_text_fallback: bool = False,
    ) -> tuple[POICandidate, POIErrorCode | None]:
        """Parse ``raw`` and report which degradation, if any, applied.

        Returns:
            A tuple of (candidate, warning code or None on a clean parse).
        """
        body = extract_json_block(raw or "")

        code: POIErrorCode
        try:
            decoded = json.loads(body)
        except (json.JSONDecodeError, RecursionError) as exc:
            logger.debug("poikit | parse | malformed JSON: %s", exc)
            code = POIErrorCode.W_PARSE_MALFORMED_JSON
        else:
            if isinstance(decoded, dict):
                response = ModelPOIResponse.model_validate(decoded)
                return self._to_candidate(response, bonus), None
            logger.debug(
                "poikit | parse | expected object, got %s", type(decoded).__name__
            )
            code = POIErrorCode.W_PARSE_SCHEMA_INVALID

        if self._config.log_responses:
            logger.debug("poikit | parse | unparseable response: %s", (raw or "")[:200])

        if plain_text_fallback:
            fallback = self.parse_plain_text(raw or "")
            if fallback.field_count:
                return fallback, POIErrorCode.W_PARSE_PLAIN_TEXT_FALLBACK

        return POICandidate.empty(self._config.parse_failure_confidence), code

    def parse_plain_text(self, raw: str) -> POICandidate:
        """Best-effort labelled-line extraction of name, address and phone.

        Confidence is fixed at ``plain_text_confidence`` regardless of how
        many of the three fields were found.
        """
        found: dict[str, str | None] = {}
        for field, patterns in PLAIN_TEXT_PATTERNS.items():
            found[field] = None
            for pattern in patterns:
                match = pattern.search(raw)
                if match:
                    found[field] = match.group(1).strip()
                    break

        return POICandidate(
            **found,
            confidence=self._config.plain_text_confidence,
        )

    @staticmethod
    def _to_candidate(response: ModelPOIResponse, bonus: float) -> POICandidate:
        return POICandidate.build(
            bonus=bonus,
            name=response.name,
            address=response.address,
            phone_number=response.phone,
            business_hours=response.hours,
            category=response.category,
            price_range=response.priceRange,
        )
