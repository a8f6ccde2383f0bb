"""Field-level reconciliation of a rule-based and a model-based candidate."""

from __future__ import annotations

from poikit.models import POI_FIELDS, POICandidate


def merge(rule: POICandidate, model: POICandidate) -> POICandidate:
    """Coalesce two candidates field by field.

    The model value wins whenever it is present; the rule value fills
    every field the model left empty.  Confidence is the higher of the two
    inputs, never a blend.
    """
    fields = {
        f: getattr(model, f) if getattr(model, f) is not None else getattr(rule, f)
        for f in POI_FIELDS
    }
    return POICandidate(
        **fields,
        confidence=max(rule.confidence, model.confidence),
    )


class Merger:
    """Injectable wrapper around :func:`merge`."""

    def merge(self, rule: POICandidate, model: POICandidate) -> POICandidate:
        return merge(rule, model)
