"""Confidence thresholding for parsed business-card fields.

CONFIDENCE_THRESHOLD is the only cutoff in the service; clients read it from
GET /api/ocr/settings for badge colouring.
"""

from collections.abc import Mapping

from models import ContactField, ParsedContactData

CONFIDENCE_THRESHOLD = 0.70
HIGH_CONFIDENCE = 0.90


def flag_low_confidence(parsed: ParsedContactData) -> ParsedContactData:
    """Return a copy with needs_review recomputed for every field.

    Null fields keep their (usually zero) confidence and are flagged as unset.
    """
    flagged = {
        name: ContactField(
            value=field.value,
            confidence=field.confidence,
            needs_review=field.confidence < CONFIDENCE_THRESHOLD,
        )
        for name, field in parsed.items()
    }
    return ParsedContactData(**flagged)


def overall_confidence(parsed: ParsedContactData) -> float:
    """Mean confidence of the non-null fields, 0.0 if every field is null."""
    scores = [field.confidence for _, field in parsed.items() if field.value is not None]
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def contact_needs_review(parsed: ParsedContactData) -> bool:
    return any(
        field.value is not None and field.confidence < CONFIDENCE_THRESHOLD
        for _, field in parsed.items()
    )


def scores_need_review(values: Mapping[str, str | None], scores: Mapping[str, float]) -> bool:
    """Contact-level flag from stored columns.

    A field only counts when it has a value; a missing score counts as 0.
    """
    return any(
        value is not None and scores.get(name, 0.0) < CONFIDENCE_THRESHOLD
        for name, value in values.items()
    )


def confidence_level(score: float) -> str:
    if score >= HIGH_CONFIDENCE:
        return "high"
    if score >= CONFIDENCE_THRESHOLD:
        return "medium"
    return "low"
