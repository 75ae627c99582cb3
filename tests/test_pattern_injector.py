"""Tests for serving active patterns to prompts."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from training_feedback.models.pattern import ActivePattern
from training_feedback.processing.pattern_injector import PatternInjector, format_pattern_section
from training_feedback.storage.tables import PatternRefinementRow


@pytest.fixture
def injector(session_factory):
    """Create a PatternInjector on the in-memory database."""
    return PatternInjector(session_factory)


@pytest.fixture
def seeded_patterns(session_factory):
    """Insert a mix of active and inactive refinements."""
    with session_factory.begin() as session:
        session.add_all([
            PatternRefinementRow(
                trade_category="Electrical",
                refinement_kind="terminology",
                pattern_key="elec_panel",
                pattern_value={"from": "elec panel", "to": "Electrical panel"},
                occurrence_count=12,
                is_active=True,
            ),
            PatternRefinementRow(
                trade_category="Electrical",
                refinement_kind="category_rule",
                pattern_key="wire",
                pattern_value={"from": "Materials", "to": "Labor"},
                occurrence_count=30,
                is_active=True,
            ),
            PatternRefinementRow(
                trade_category="Electrical",
                refinement_kind="terminology",
                pattern_key="cu_wire",
                pattern_value={"from": "cu wire", "to": "Copper wire"},
                occurrence_count=4,
                is_active=False,
            ),
            PatternRefinementRow(
                trade_category="Plumbing",
                refinement_kind="terminology",
                pattern_key="cu_pipe",
                pattern_value={"from": "cu pipe", "to": "Copper pipe"},
                occurrence_count=20,
                is_active=True,
            ),
        ])


class TestPatternInjector:
    """Test suite for PatternInjector."""

    @pytest.mark.usefixtures("seeded_patterns")
    def test_active_patterns_most_frequent_first(self, injector):
        """Test that only active patterns for the trade are served."""
        patterns = injector.get_active_patterns("Electrical")

        assert [p.pattern_key for p in patterns] == ["wire", "elec_panel"]

    @pytest.mark.usefixtures("seeded_patterns")
    def test_limit(self, injector):
        """Test limiting the number of patterns."""
        assert len(injector.get_active_patterns("Electrical", limit=1)) == 1

    @pytest.mark.usefixtures("seeded_patterns")
    def test_zero_limit(self, injector):
        """Test that an explicit limit of zero serves no patterns."""
        assert injector.get_active_patterns("Electrical", limit=0) == []

    def test_empty_on_storage_error(self):
        """Test that read failures give no patterns."""
        failing_factory = MagicMock(side_effect=OperationalError("SELECT", {}, Exception("down")))

        assert PatternInjector(failing_factory).get_active_patterns("Electrical") == []

    @pytest.mark.usefixtures("seeded_patterns")
    def test_prompt_section(self, injector):
        """Test the rendered prompt section."""
        section = injector.get_pattern_prompt_section("Electrical")

        assert "LEARNED PATTERNS FOR THIS TRADE:" in section
        assert '"elec panel" should be written as "Electrical panel"' in section
        assert 'Items like "Materials" belong in category "Labor"' in section
        assert "cu wire" not in section


class TestFormatPatternSection:
    """Test suite for pattern prompt formatting."""

    def test_empty(self):
        """Test that no patterns give an empty section."""
        assert format_pattern_section([]) == ""

    def test_extraction_rule_uses_context(self):
        """Test that extraction rules render their context."""
        pattern = ActivePattern(
            pattern_key="exclusion_true_to_false",
            pattern_value={"from": "true", "to": "false", "context": "Items like this were wrongly marked as excluded from scope"},
            refinement_kind="extraction_rule",
            occurrence_count=11,
        )

        section = format_pattern_section([pattern])

        assert "Extraction rules:" in section
        assert "wrongly marked as excluded" in section
