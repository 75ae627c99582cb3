"""Tests for contribution quality scoring."""

from training_feedback.processing.quality_scorer import score_contribution
from training_feedback.storage.tables import ContributionRow


def make_row(kind, original, corrected, snippet="Install main electrical panel", confidence=None):
    return ContributionRow(
        trade_category="Electrical",
        document_category="bid",
        correction_kind=kind,
        original_value=original,
        corrected_value=corrected,
        redacted_text_snippet=snippet,
        original_confidence=confidence,
    )


class TestQualityScorer:
    """Test suite for score_contribution."""

    def test_clear_description_is_high_quality(self):
        """Test that a substantive rewrite scores highly."""
        score = score_contribution(make_row("description", {"text": "elec panel"}, {"text": "Electrical panel"}))

        assert score.score == 1.0
        assert score.is_high_quality is True
        assert score.notes == []

    def test_identical_values(self):
        """Test that no-op corrections lose clarity."""
        score = score_contribution(make_row("category", {"value": "Labor"}, {"value": "Labor"}))

        assert score.factors["clarity"] == 0.0
        assert score.is_high_quality is False
        assert "Original and corrected values are identical" in score.notes

    def test_confidence_ignored_in_comparison(self):
        """Test that the original-side confidence doesn't count as a change."""
        score = score_contribution(
            make_row("category", {"value": "Labor", "confidence": 0.7}, {"value": "Labor"})
        )

        assert score.factors["clarity"] == 0.0

    def test_short_generic_description(self):
        """Test that vague corrections score lower."""
        score = score_contribution(make_row("description", {"text": "panel"}, {"text": "misc"}))

        assert score.factors["clarity"] < 1.0
        assert score.factors["specificity"] < 1.0
        assert "Corrected description is generic" in score.notes

    def test_missing_context(self):
        """Test that missing source text lowers completeness."""
        score = score_contribution(
            make_row("description", {"text": "elec panel"}, {"text": "Electrical panel"}, snippet=None)
        )

        assert score.factors["completeness"] == 0.8
        assert "Missing raw text context" in score.notes

    def test_price_within_one_bucket(self):
        """Test that a price change inside one bucket scores lower on clarity."""
        score = score_contribution(
            make_row(
                "price",
                {"total_price_range": "5K-10K", "notes": "base"},
                {"total_price_range": "5K-10K"},
            )
        )

        assert score.factors["clarity"] == 0.7

    def test_uncertain_items_are_not_penalized(self):
        """Test that low-confidence originals keep full specificity."""
        score = score_contribution(
            make_row("unit", {"value": "EA"}, {"value": "LF"}, confidence=0.4)
        )

        assert score.factors["specificity"] == 1.0

    def test_confident_items_score_lower(self):
        """Test that correcting a very confident item teaches less."""
        score = score_contribution(
            make_row("unit", {"value": "EA"}, {"value": "LF"}, confidence=0.95)
        )

        assert score.factors["specificity"] == 0.9
