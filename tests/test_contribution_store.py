"""Tests for the ContributionStore class."""

import pytest

from training_feedback.constants import ModerationState
from training_feedback.exceptions import NotFoundError, ValidationError


class TestAddContribution:
    """Test suite for storing contributions."""

    def test_add_contribution_is_pending(self, store, make_correction):
        """Test that new contributions await moderation."""
        contribution_id = store.add_contribution(make_correction())

        row = store.get_contribution(contribution_id)

        assert row.moderation_state == ModerationState.PENDING.value
        assert row.moderated_at is None
        assert row.correction_kind == "description"
        assert row.trade_category == "Electrical"

    def test_add_contribution_anonymizes(self, store, make_correction):
        """Test that stored contributions never hold exact prices or PII."""
        correction = make_correction(
            "price",
            {"total_price": 7500},
            {"total_price": 8200},
            raw_text="Call 555-123-4567 about the $7,500 panel",
            original_confidence=0.7,
        )

        row = store.get_contribution(store.add_contribution(correction))

        assert row.original_value == {"total_price_range": "5K-10K"}
        assert row.corrected_value == {"total_price_range": "5K-10K"}
        assert row.redacted_text_snippet == "Call [PHONE] about the $[5K-10K] panel"
        assert row.original_confidence == 0.7

    def test_add_contributions(self, store, make_correction):
        """Test storing several corrections at once."""
        ids = store.add_contributions([make_correction(), make_correction("unit")])

        assert len(ids) == 2
        assert len(set(ids)) == 2

    def test_get_missing_contribution(self, store):
        """Test that unknown ids raise NotFoundError."""
        with pytest.raises(NotFoundError):
            store.get_contribution("does-not-exist")


class TestModeration:
    """Test suite for moderation transitions."""

    def test_approve(self, store, make_correction):
        """Test moving a pending contribution to approved."""
        contribution_id = store.add_contribution(make_correction())

        row = store.moderate(contribution_id, ModerationState.APPROVED)

        assert row.moderation_state == "approved"
        assert row.moderated_at is not None
        assert store.get_contribution(contribution_id).moderation_state == "approved"

    def test_reject_by_string(self, store, make_correction):
        """Test that states can be given as strings."""
        contribution_id = store.add_contribution(make_correction())

        row = store.moderate(contribution_id, "rejected")

        assert row.moderation_state == "rejected"

    def test_cannot_moderate_twice(self, store, make_correction):
        """Test that approved contributions can't be rejected later."""
        contribution_id = store.add_contribution(make_correction())
        store.moderate(contribution_id, ModerationState.APPROVED)

        with pytest.raises(ValidationError):
            store.moderate(contribution_id, ModerationState.REJECTED)

    def test_cannot_return_to_pending(self, store, make_correction):
        """Test that pending is not a valid target state."""
        contribution_id = store.add_contribution(make_correction())

        with pytest.raises(ValidationError):
            store.moderate(contribution_id, ModerationState.PENDING)

    def test_unknown_state(self, store, make_correction):
        """Test that unknown states are rejected."""
        contribution_id = store.add_contribution(make_correction())

        with pytest.raises(ValidationError):
            store.moderate(contribution_id, "archived")

    def test_moderate_missing(self, store):
        """Test moderating an unknown contribution."""
        with pytest.raises(NotFoundError):
            store.moderate("does-not-exist", ModerationState.APPROVED)


class TestQueries:
    """Test suite for contribution queries."""

    def test_approved_filters_state_and_trade(self, store, make_correction, add_approved):
        """Test that only approved contributions are returned."""
        add_approved(make_correction(), make_correction(trade_category="Plumbing"))
        store.add_contribution(make_correction())

        assert len(store.approved()) == 2
        assert [r.trade_category for r in store.approved("Plumbing")] == ["Plumbing"]

    def test_approved_without_embedding(self, store, embedding_store, make_correction, add_approved):
        """Test that indexed contributions are excluded."""
        ids = add_approved(make_correction(), make_correction(), make_correction())
        embedding_store.add_embedding(ids[0], "Electrical", "description", "text", [1.0, 0.0], 0.9)

        pending = store.approved_without_embedding(limit=10)

        assert sorted(r.id for r in pending) == sorted(ids[1:])

    def test_approved_without_embedding_limit(self, store, make_correction, add_approved):
        """Test that the batch size bounds the result."""
        add_approved(*[make_correction() for _ in range(4)])

        assert len(store.approved_without_embedding(limit=3)) == 3

    def test_trade_categories(self, store, make_correction, add_approved):
        """Test listing trades that have approved contributions."""
        add_approved(make_correction(trade_category="Roofing"), make_correction())
        store.add_contribution(make_correction(trade_category="Painting"))

        assert store.trade_categories() == ["Electrical", "Roofing"]

    def test_count_by_state(self, store, make_correction, add_approved):
        """Test counting contributions per moderation state."""
        add_approved(make_correction())
        rejected = store.add_contribution(make_correction())
        store.moderate(rejected, "rejected")
        store.add_contribution(make_correction())

        assert store.count_by_state() == {"pending": 1, "approved": 1, "rejected": 1}
