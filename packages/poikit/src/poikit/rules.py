"""Rule-based POI extraction over line-ordered OCR text.

``FieldExtractor`` runs ordered, line-consuming passes (phone, address,
hours, price) over the normalized lines, then infers a category from the
whole text and builds the facility name from whatever lines remain.  A
line claimed by one pass is never offered to a later one.
"""

from __future__ import annotations

import logging
import re

from poikit.models import POICandidate
from poikit.patterns import (
    ADDRESS_CONTINUATION_PATTERNS,
    ADDRESS_PATTERNS,
    CATEGORY_KEYWORDS,
    HOURS_PATTERNS,
    INFO_KEYWORDS,
    NUMERIC_LINE,
    PHONE_PATTERNS,
    PRICE_PATTERNS,
)

logger = logging.getLogger("poikit")

_FULLWIDTH_PARENS = str.maketrans({"（": "(", "）": ")"})


def normalize_lines(text: str) -> list[str]:
    """Split on line breaks, trim each line, and drop empty lines."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def _first_match(line: str, patterns: list[re.Pattern[str]]) -> str | None:
    """Return capture group 1 of the first matching pattern, else None."""
    for pattern in patterns:
        match = pattern.search(line)
        if match is not None:
            return match.group(1) if match.groups() else match.group(0)
    return None


class FieldExtractor:
    """Deterministic regex/heuristic extractor.

    Parameters
    ----------
    max_name_lines:
        How many surviving lines are joined to form the facility name.
    """

    def __init__(self, max_name_lines: int = 3) -> None:
        self._max_name_lines = max_name_lines

    def extract(self, text: str) -> POICandidate:
        """Extract a candidate from OCR text. Pure; never raises."""
        lines = normalize_lines(text)
        used: set[int] = set()

        phone = self._extract_phone(lines, used)
        address = self._extract_address(lines, used)
        hours = self._extract_labelled(lines, used, HOURS_PATTERNS)
        price_range = self._extract_price(lines, used)
        category = self.infer_category(text)
        name = self._extract_name(lines, used)

        return POICandidate.build(
            name=name,
            address=address,
            phone_number=phone,
            business_hours=hours,
            category=category,
            price_range=price_range,
        )

    # -- passes --------------------------------------------------------------

    def _extract_phone(self, lines: list[str], used: set[int]) -> str | None:
        for i, line in enumerate(lines):
            if i in used:
                continue
            value = _first_match(line, PHONE_PATTERNS)
            if value:
                used.add(i)
                return value.translate(_FULLWIDTH_PARENS)
        return None

    def _extract_address(self, lines: list[str], used: set[int]) -> str | None:
        for i, line in enumerate(lines):
            if i in used:
                continue
            value = _first_match(line, ADDRESS_PATTERNS)
            if value is None:
                continue
            used.add(i)
            value = value.strip()
            nxt = i + 1
            if nxt < len(lines) and nxt not in used:
                # A bare label puts the whole address on the next line.
                if not value or self._is_address_continuation(lines[nxt]):
                    value += lines[nxt]
                    used.add(nxt)
            return value or None
        return None

    @staticmethod
    def _is_address_continuation(line: str) -> bool:
        return any(p.search(line) for p in ADDRESS_CONTINUATION_PATTERNS)

    def _extract_labelled(
        self,
        lines: list[str],
        used: set[int],
        patterns: list[re.Pattern[str]],
    ) -> str | None:
        for i, line in enumerate(lines):
            if i in used:
                continue
            value = _first_match(line, patterns)
            if value is None:
                continue
            used.add(i)
            value = value.strip()
            if not value and i + 1 < len(lines) and i + 1 not in used:
                value = lines[i + 1]
                used.add(i + 1)
            return value or None
        return None

    def _extract_price(self, lines: list[str], used: set[int]) -> str | None:
        for i, line in enumerate(lines):
            if i in used:
                continue
            value = _first_match(line, PRICE_PATTERNS)
            if value:
                used.add(i)
                return value.strip()
        return None

    @staticmethod
    def infer_category(text: str) -> str | None:
        """Return the first category whose keywords occur anywhere in ``text``.

        Scans the raw, unnormalized text, including lines already claimed
        by other passes.
        """
        lowered = text.lower()
        for label, keywords in CATEGORY_KEYWORDS:
            if any(keyword.lower() in lowered for keyword in keywords):
                return label
        return None

    def _extract_name(self, lines: list[str], used: set[int]) -> str | None:
        name_lines: list[str] = []
        for i, line in enumerate(lines):
            if i in used:
                continue
            lowered = line.lower()
            if any(keyword in lowered for keyword in INFO_KEYWORDS):
                used.add(i)
                continue
            if NUMERIC_LINE.match(line) or len(line) <= 1:
                continue
            name_lines.append(line)

        if not name_lines:
            return None
        return " ".join(name_lines[: self._max_name_lines])
