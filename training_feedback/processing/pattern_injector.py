"""Serves active refinements to the extraction prompt builder."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from training_feedback.config import PATTERN_CONFIG
from training_feedback.constants import (
    MAX_CATEGORY_PATTERNS,
    MAX_EXTRACTION_PATTERNS,
    MAX_TERMINOLOGY_PATTERNS,
    RefinementKind,
)
from training_feedback.models.pattern import ActivePattern
from training_feedback.storage.tables import PatternRefinementRow

logger = logging.getLogger(__name__)


class PatternInjector:
    """Reads active refinements and renders them as prompt instructions."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get_active_patterns(self, trade_category: str, limit: int | None = None) -> list[ActivePattern]:
        """Fetch active patterns for a trade, most frequent first.

        Returns an empty list if the patterns cannot be read.
        """
        if limit is None:
            limit = PATTERN_CONFIG["active_pattern_limit"]

        query = (
            select(PatternRefinementRow)
            .where(
                PatternRefinementRow.trade_category == trade_category,
                PatternRefinementRow.is_active.is_(True),
            )
            .order_by(PatternRefinementRow.occurrence_count.desc(), PatternRefinementRow.id)
            .limit(limit)
        )

        try:
            with self._session_factory() as session:
                rows = list(session.scalars(query))
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch active patterns for {trade_category}: {e!s}")
            return []

        return [
            ActivePattern(
                pattern_key=row.pattern_key,
                pattern_value=row.pattern_value,
                refinement_kind=row.refinement_kind,
                occurrence_count=row.occurrence_count,
            )
            for row in rows
        ]

    def get_pattern_prompt_section(self, trade_category: str, limit: int | None = None) -> str:
        """Fetch and format the active patterns for a trade"""
        return format_pattern_section(self.get_active_patterns(trade_category, limit))


def format_pattern_section(patterns: list[ActivePattern]) -> str:
    """Format active patterns as a prompt section for injection.

    Args:
        patterns: Active patterns for one trade

    Returns:
        Prompt text, or an empty string when there is nothing to inject

    """
    terminology = [p for p in patterns if p.refinement_kind == RefinementKind.TERMINOLOGY.value]
    category_rules = [p for p in patterns if p.refinement_kind == RefinementKind.CATEGORY_RULE.value]
    extraction_rules = [p for p in patterns if p.refinement_kind == RefinementKind.EXTRACTION_RULE.value]

    sections = []

    if terminology:
        items = "\n".join(
            f'  - "{p.pattern_value["from"]}" should be written as "{p.pattern_value["to"]}"'
            for p in terminology[:MAX_TERMINOLOGY_PATTERNS]
        )
        sections.append(f"Standard terminology for this trade:\n{items}")

    if category_rules:
        items = "\n".join(
            f'  - Items like "{p.pattern_value["from"]}" belong in category "{p.pattern_value["to"]}"'
            for p in category_rules[:MAX_CATEGORY_PATTERNS]
        )
        sections.append(f"Category assignment rules:\n{items}")

    if extraction_rules:
        items = "\n".join(
            f"  - {p.pattern_value.get('context') or p.pattern_value['from'] + ' -> ' + p.pattern_value['to']}"
            for p in extraction_rules[:MAX_EXTRACTION_PATTERNS]
        )
        sections.append(f"Extraction rules:\n{items}")

    if not sections:
        return ""

    body = "\n\n".join(sections)
    return (
        "\nLEARNED PATTERNS FOR THIS TRADE:\n"
        "Based on patterns from verified corrections:\n\n"
        f"{body}\n\n"
        "Apply these patterns when extracting and categorizing items.\n"
    )
