"""Quality scoring for training contributions.

Scores a correction on clarity, consistency, completeness and specificity
so that only high-quality examples are preferred as few-shot guidance.
"""

from typing import Any

from training_feedback.config import INDEXER_CONFIG, QUALITY_WEIGHTS
from training_feedback.constants import CorrectionKind
from training_feedback.models.retrieval import QualityScore
from training_feedback.storage.tables import ContributionRow

GENERIC_TERMS = ["item", "thing", "stuff", "misc", "other"]


def score_contribution(contribution: ContributionRow) -> QualityScore:
    """Score a contribution's usefulness as a training example.

    Args:
        contribution: An anonymized contribution

    Returns:
        QualityScore with the weighted score, per-factor scores and notes

    """
    notes: list[str] = []
    kind = contribution.correction_kind
    original = contribution.original_value or {}
    corrected = contribution.corrected_value or {}

    factors = {
        "clarity": _score_clarity(kind, original, corrected, notes),
        "completeness": _score_completeness(kind, original, corrected, contribution.redacted_text_snippet, notes),
        "consistency": _score_consistency(original, corrected, notes),
        "specificity": _score_specificity(kind, corrected, contribution.original_confidence, notes),
    }

    score = sum(factors[name] * weight for name, weight in QUALITY_WEIGHTS.items())
    score = round(score, 2)

    return QualityScore(
        score=score,
        factors=factors,
        is_high_quality=score >= float(INDEXER_CONFIG["high_quality_score"]),
        notes=notes,
    )


def _score_clarity(kind: str, original: dict[str, Any], corrected: dict[str, Any], notes: list[str]) -> float:
    if _comparable(original) == _comparable(corrected):
        notes.append("Original and corrected values are identical")
        return 0.0

    score = 1.0

    if kind == CorrectionKind.DESCRIPTION.value:
        original_text = _text(original, "text") or ""
        corrected_text = _text(corrected, "text") or ""

        # Typo-level edits teach little
        if _character_overlap(original_text, corrected_text) > 0.95:
            score -= 0.3
            notes.append("Very minor text change (possibly just typo)")

        if len(corrected_text) < 5:
            score -= 0.4
            notes.append("Corrected description is very short")

    elif kind == CorrectionKind.PRICE.value:
        # Prices are bucketed by now; a correction within one bucket is
        # usually a rounding fix
        if original.get("total_price_range") and original.get("total_price_range") == corrected.get("total_price_range"):
            score -= 0.3
            notes.append("Price change stays within one magnitude bucket")

    return max(0.0, score)


def _score_completeness(
    kind: str,
    original: dict[str, Any],
    corrected: dict[str, Any],
    snippet: str | None,
    notes: list[str],
) -> float:
    score = 1.0

    if not snippet:
        score -= 0.2
        notes.append("Missing raw text context")

    if kind == CorrectionKind.DESCRIPTION.value:
        if original.get("text") is None:
            score -= 0.3
            notes.append("Missing original text")
        if corrected.get("text") is None:
            score -= 0.3
            notes.append("Missing corrected text")

    elif kind == CorrectionKind.CATEGORY.value:
        if original.get("value") is None:
            score -= 0.3
            notes.append("Missing original category")
        if corrected.get("value") is None:
            score -= 0.3
            notes.append("Missing corrected category")

    elif kind == CorrectionKind.PRICE.value:
        if original.get("total_price_range") is None:
            score -= 0.2
        if corrected.get("total_price_range") is None:
            score -= 0.2

    return max(0.0, score)


def _score_consistency(original: dict[str, Any], corrected: dict[str, Any], notes: list[str]) -> float:
    score = 1.0
    original = _comparable(original)
    corrected = _comparable(corrected)

    common_keys = [k for k in original if k in corrected]
    if not common_keys and original:
        score -= 0.4
        notes.append("Original and corrected have no common keys")

    for key in common_keys:
        if (
            original[key] is not None
            and corrected[key] is not None
            and type(original[key]) is not type(corrected[key])
        ):
            score -= 0.2
            notes.append(f"Type mismatch for key: {key}")

    return max(0.0, score)


def _score_specificity(
    kind: str,
    corrected: dict[str, Any],
    original_confidence: float | None,
    notes: list[str],
) -> float:
    score = 1.0

    # Correcting uncertain items is more valuable than confident ones
    if original_confidence is not None:
        if original_confidence < 0.6:
            score += 0.1
        elif original_confidence > 0.9:
            score -= 0.1

    if kind == CorrectionKind.DESCRIPTION.value:
        corrected_text = _text(corrected, "text") or ""
        is_generic = any(term in corrected_text.lower() for term in GENERIC_TERMS)
        if is_generic and len(corrected_text) < 20:
            score -= 0.2
            notes.append("Corrected description is generic")

    return min(1.0, max(0.0, score))


def _comparable(value: dict[str, Any]) -> dict[str, Any]:
    # Only the original side records the model's confidence
    return {k: v for k, v in value.items() if k != "confidence"}


def _text(value: dict[str, Any], key: str) -> str | None:
    text = value.get(key)
    return text if isinstance(text, str) else None


def _character_overlap(a: str, b: str) -> float:
    """Share of distinct characters two strings have in common."""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    a_chars = set(a.lower())
    b_chars = set(b.lower())
    return len(a_chars & b_chars) / max(len(a_chars), len(b_chars))
