"""Tests for the typed correction models."""

import pytest

from training_feedback.constants import CorrectionKind
from training_feedback.exceptions import ValidationError
from training_feedback.models.correction import (
    CORRECTION_TYPES,
    VALUE_TYPES,
    PriceCorrection,
    QuantityValue,
    UnitValue,
    detect_corrections,
    ensure_value,
    parse_correction,
    parse_value,
)


class TestParseCorrection:
    """Test suite for correction validation."""

    def test_dispatches_on_kind(self):
        """Test that the kind selects the payload type."""
        correction = parse_correction({
            "correction_kind": "price",
            "trade_category": "Electrical",
            "document_category": "bid",
            "original_value": {"total_price": 100},
            "corrected_value": {"total_price": 120},
        })

        assert isinstance(correction, PriceCorrection)
        assert correction.kind == CorrectionKind.PRICE

    def test_unknown_kind(self):
        """Test that unknown kinds are rejected."""
        with pytest.raises(ValidationError):
            parse_correction({
                "correction_kind": "color",
                "trade_category": "Electrical",
                "document_category": "bid",
                "original_value": {},
                "corrected_value": {},
            })

    def test_payload_must_match_kind(self):
        """Test that a description payload is not accepted as a price."""
        with pytest.raises(ValidationError):
            parse_correction({
                "correction_kind": "price",
                "trade_category": "Electrical",
                "document_category": "bid",
                "original_value": {"text": "panel"},
                "corrected_value": {"total_price": 120},
            })

    def test_confidence_range(self):
        """Test that confidences outside 0-1 are rejected."""
        with pytest.raises(ValidationError):
            parse_correction({
                "correction_kind": "unit",
                "trade_category": "Electrical",
                "document_category": "bid",
                "original_value": {"value": "EA"},
                "corrected_value": {"value": "LF"},
                "original_confidence": 1.5,
            })

    def test_every_kind_has_types(self):
        """Test that each kind has a correction and a value type."""
        assert set(CORRECTION_TYPES) == set(CorrectionKind)
        assert set(VALUE_TYPES) == set(CorrectionKind)

    def test_parse_value_unknown_kind(self):
        """Test parsing a stored value with an unknown kind."""
        with pytest.raises(ValidationError):
            parse_value("color", {})

    def test_ensure_value(self):
        """Test narrowing a payload to the type of its kind."""
        value = parse_value(CorrectionKind.UNIT, {"value": "LF"})

        assert ensure_value(value, UnitValue) is value
        with pytest.raises(ValidationError):
            ensure_value(value, QuantityValue)


class TestDetectCorrections:
    """Test suite for diffing extracted and edited line items."""

    def test_one_correction_per_changed_field(self):
        """Test that each changed field produces a correction."""
        original = {
            "description": "elec panel",
            "category": "Materials",
            "total_price": 100.0,
            "unit_price": 10.0,
            "confidence_score": 0.7,
        }
        corrected = {"description": "Electrical panel", "total_price": 120.0}

        corrections = detect_corrections(original, corrected, "Electrical", "bid", raw_text="elec panel 100")

        assert [c.kind for c in corrections] == [CorrectionKind.DESCRIPTION, CorrectionKind.PRICE]
        price = corrections[1]
        assert price.original_confidence == 0.7
        assert price.corrected_value.total_price == 120.0
        assert price.corrected_value.unit_price == 10.0
        assert price.raw_text == "elec panel 100"

    def test_no_changes(self):
        """Test that identical items produce nothing."""
        item = {"description": "Electrical panel", "quantity": 2}

        assert detect_corrections(item, dict(item), "Electrical", "bid") == []

    def test_exclusion_and_unit(self):
        """Test flag and unit changes."""
        corrections = detect_corrections(
            {"is_exclusion": False, "unit": "EA"},
            {"is_exclusion": True, "unit": "LF"},
            "Electrical",
            "bid",
        )

        assert [c.kind for c in corrections] == [CorrectionKind.EXCLUSION_FLAG, CorrectionKind.UNIT]
        assert corrections[0].corrected_value.value is True
