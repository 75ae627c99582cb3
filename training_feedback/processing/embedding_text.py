"""Deterministic text rendering of corrections for semantic search.

The indexer and the retriever both render through this module so that
stored corrections and queries share one layout.
"""

from training_feedback.constants import EMBEDDING_CONTEXT_MAX_CHARS, CorrectionKind
from training_feedback.exceptions import ValidationError
from training_feedback.models.correction import (
    CategoryValue,
    CorrectionValue,
    DescriptionValue,
    ExclusionFlagValue,
    PriceValue,
    QuantityValue,
    UnitValue,
    ensure_value,
    parse_value,
)
from training_feedback.storage.tables import ContributionRow


def _header(trade_category: str, correction_kind: str | None = None) -> list[str]:
    parts = [f"Trade: {trade_category}"]
    if correction_kind:
        parts.append(f"Correction type: {correction_kind}")
    return parts


def _context(text: str | None) -> list[str]:
    if not text:
        return []
    return [f"Context: {text[:EMBEDDING_CONTEXT_MAX_CHARS]}"]


def _render_values(kind: CorrectionKind, original: CorrectionValue, corrected: CorrectionValue) -> list[str]:
    parts = []

    if kind == CorrectionKind.DESCRIPTION:
        original = ensure_value(original, DescriptionValue)
        corrected = ensure_value(corrected, DescriptionValue)
        if original.text:
            parts.append(f"Original: {original.text}")
        if corrected.text:
            parts.append(f"Corrected to: {corrected.text}")

    elif kind == CorrectionKind.CATEGORY:
        original = ensure_value(original, CategoryValue)
        corrected = ensure_value(corrected, CategoryValue)
        if original.value:
            parts.append(f"Original category: {original.value}")
        if corrected.value:
            parts.append(f"Corrected category: {corrected.value}")

    elif kind == CorrectionKind.PRICE:
        original = ensure_value(original, PriceValue)
        corrected = ensure_value(corrected, PriceValue)
        if original.total_price_range:
            parts.append(f"Original price: {original.total_price_range}")
        if corrected.total_price_range:
            parts.append(f"Corrected price: {corrected.total_price_range}")
        if original.unit_price_range or corrected.unit_price_range:
            parts.append(
                f"Unit price: {original.unit_price_range or 'unknown'} -> "
                f"{corrected.unit_price_range or 'unknown'}"
            )

    elif kind == CorrectionKind.EXCLUSION_FLAG:
        original = ensure_value(original, ExclusionFlagValue)
        corrected = ensure_value(corrected, ExclusionFlagValue)
        was = "excluded" if original.value else "included"
        now = "excluded" if corrected.value else "included"
        parts.append(f"Exclusion flag: {was} -> {now}")

    elif kind in (CorrectionKind.QUANTITY, CorrectionKind.UNIT):
        value_type = QuantityValue if kind == CorrectionKind.QUANTITY else UnitValue
        original = ensure_value(original, value_type)
        corrected = ensure_value(corrected, value_type)
        if original.value is not None:
            parts.append(f"Original {kind.value}: {original.value}")
        if corrected.value is not None:
            parts.append(f"Corrected {kind.value}: {corrected.value}")

    else:
        raise ValidationError(f"Unsupported correction kind: {kind}")

    return parts


def build_embedding_text(contribution: ContributionRow) -> str:
    """Render a contribution as the text that gets embedded.

    Trade, correction kind, the kind-specific original vs corrected values,
    then up to 200 characters of redacted source text.

    Raises:
        ValidationError: If the stored values don't match the correction kind

    """
    kind = CorrectionKind(contribution.correction_kind)
    original = parse_value(kind, contribution.original_value)
    corrected = parse_value(kind, contribution.corrected_value)

    parts = _header(contribution.trade_category, kind.value)
    parts.extend(_render_values(kind, original, corrected))
    parts.extend(_context(contribution.redacted_text_snippet))
    return "\n".join(parts)


def build_query_text(trade_category: str, query_text: str) -> str:
    """Render a new extraction context in the same layout as stored corrections"""
    parts = _header(trade_category)
    parts.extend(_context(query_text))
    return "\n".join(parts)
