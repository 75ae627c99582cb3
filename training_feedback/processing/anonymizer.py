"""Anonymization of corrections before they become training data.

Strips company names, exact figures, contact details, addresses, project
identifiers, dates and person names while keeping the semantic content
needed to learn from the correction. Exact prices are replaced by one of
eleven magnitude buckets so the size of a line item is still visible.
"""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from re import Match, Pattern

from training_feedback.config import PII_DETECTORS, get_detectors_file
from training_feedback.constants import (
    PRICE_BUCKETS,
    RAW_TEXT_SNIPPET_MAX_CHARS,
    CorrectionKind,
)
from training_feedback.exceptions import ValidationError
from training_feedback.models.correction import (
    CategoryValue,
    Correction,
    CorrectionValue,
    DescriptionValue,
    PriceValue,
    QuantityValue,
    UnitValue,
    ensure_value,
)

logger = logging.getLogger(__name__)

# Redaction is repeated until the text stops changing, so applying it
# again to its own output is a no-op.
MAX_REDACTION_PASSES = 3


@dataclass(frozen=True)
class Detector:
    """A named PII pattern and the placeholder its matches become."""

    name: str
    pattern: Pattern
    placeholder: str | None = None  # None: replace currency with its bucket


def price_bucket(amount: float) -> str:
    """Map a price to its magnitude bucket (lower bounds inclusive)."""
    label = PRICE_BUCKETS[0][1]
    for lower_bound, bucket in PRICE_BUCKETS:
        if amount < lower_bound:
            break
        label = bucket
    return label


def _bucket_currency(match: Match) -> str:
    amount = float(re.sub(r"[$,\s]", "", match.group()))
    return f"$[{price_bucket(amount)}]"


def load_detectors(path: str | Path) -> list[Detector]:
    """Load detectors from a JSON file.

    The file holds a list of objects with ``name``, ``pattern`` and optional
    ``placeholder`` and ``ignore_case`` keys, in the order they are applied.

    Raises:
        ValidationError: If the file is malformed or a pattern does not compile

    """
    try:
        entries = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ValidationError(f"Cannot read detectors from {path}: {e}") from e

    if not isinstance(entries, list):
        raise ValidationError(f"Detectors file {path} must contain a list")

    detectors = []
    for entry in entries:
        try:
            flags = re.IGNORECASE if entry.get("ignore_case") else 0
            detectors.append(
                Detector(
                    name=entry["name"],
                    pattern=re.compile(entry["pattern"], flags),
                    placeholder=entry.get("placeholder"),
                )
            )
        except (KeyError, TypeError, AttributeError, re.error) as e:
            raise ValidationError(f"Invalid detector entry {entry!r}: {e}") from e

    logger.info(f"Loaded {len(detectors)} PII detectors from {path}")
    return detectors


def default_detectors() -> list[Detector]:
    """Detectors from ``PII_DETECTORS_FILE`` if set, else the built-in list."""
    detectors_file = get_detectors_file()
    if detectors_file:
        return load_detectors(detectors_file)
    return [Detector(name, pattern, placeholder) for name, pattern, placeholder in PII_DETECTORS]


class Anonymizer:
    """Redacts sensitive content from corrections."""

    def __init__(self, detectors: list[Detector] | None = None) -> None:
        self.detectors = detectors if detectors is not None else default_detectors()

    def redact_text(self, text: str | None) -> str | None:
        """Replace sensitive spans in text with placeholders.

        Args:
            text: Free text from a bid document or a corrected field

        Returns:
            The redacted text, or the input unchanged if it is empty

        """
        if not text:
            return text

        redacted = text
        for _ in range(MAX_REDACTION_PASSES):
            previous = redacted
            for detector in self.detectors:
                if detector.placeholder is None:
                    redacted = detector.pattern.sub(_bucket_currency, redacted)
                else:
                    redacted = detector.pattern.sub(detector.placeholder, redacted)
            if redacted == previous:
                break

        return redacted

    def anonymize(self, correction: Correction) -> Correction:
        """Return a copy of the correction with sensitive content removed.

        Deterministic and idempotent: anonymizing an already anonymized
        correction returns an equal correction.

        Args:
            correction: A typed correction straight from the diff routine

        Returns:
            The anonymized correction of the same kind

        """
        snippet = correction.raw_text
        if snippet:
            snippet = self._bounded_snippet(snippet)

        return correction.model_copy(
            update={
                "original_value": self._anonymize_value(correction.kind, correction.original_value),
                "corrected_value": self._anonymize_value(correction.kind, correction.corrected_value),
                "raw_text": snippet,
                "ai_notes": self.redact_text(correction.ai_notes),
            }
        )

    def _bounded_snippet(self, text: str) -> str:
        # Cutting redacted text can expose a shorter match at the new end
        # (a name losing its trailing digit), so redact and cut until stable.
        snippet = text[:RAW_TEXT_SNIPPET_MAX_CHARS]
        for _ in range(MAX_REDACTION_PASSES):
            previous = snippet
            snippet = self.redact_text(snippet)[:RAW_TEXT_SNIPPET_MAX_CHARS]
            if snippet == previous:
                break
        return snippet

    def _anonymize_value(self, kind: CorrectionKind, value: CorrectionValue) -> CorrectionValue:
        if kind == CorrectionKind.DESCRIPTION:
            value = ensure_value(value, DescriptionValue)
            return value.model_copy(
                update={
                    "text": self.redact_text(value.text),
                    "description": self.redact_text(value.description),
                }
            )

        if kind == CorrectionKind.CATEGORY:
            value = ensure_value(value, CategoryValue)
            return value.model_copy(update={"value": self.redact_text(value.value)})

        if kind == CorrectionKind.PRICE:
            value = ensure_value(value, PriceValue)
            updates: dict[str, object] = {"notes": self.redact_text(value.notes)}
            if value.total_price is not None:
                updates["total_price_range"] = price_bucket(value.total_price)
                updates["total_price"] = None
            if value.unit_price is not None:
                updates["unit_price_range"] = price_bucket(value.unit_price)
                updates["unit_price"] = None
            return value.model_copy(update=updates)

        if kind == CorrectionKind.EXCLUSION_FLAG:
            # Boolean flags carry nothing sensitive
            return value

        if kind == CorrectionKind.QUANTITY:
            value = ensure_value(value, QuantityValue)
            quantity = value.value
            if isinstance(quantity, str):
                quantity = self.redact_text(quantity)
            return value.model_copy(update={"value": quantity, "notes": self.redact_text(value.notes)})

        if kind == CorrectionKind.UNIT:
            value = ensure_value(value, UnitValue)
            return value.model_copy(update={"value": self.redact_text(value.value)})

        raise ValidationError(f"Unsupported correction kind: {kind}")


_default_anonymizer: Anonymizer | None = None


def get_anonymizer() -> Anonymizer:
    """Return the shared anonymizer built from the configured detectors."""
    global _default_anonymizer
    if _default_anonymizer is None:
        _default_anonymizer = Anonymizer()
    return _default_anonymizer


def anonymize(correction: Correction) -> Correction:
    """Anonymize a correction with the configured detectors."""
    return get_anonymizer().anonymize(correction)


def anonymize_text(text: str | None) -> str | None:
    """Redact free text with the configured detectors."""
    return get_anonymizer().redact_text(text)
