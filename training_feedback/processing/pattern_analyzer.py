"""Mines recurring correction patterns and promotes frequent ones to rules."""

import logging
import re
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from training_feedback.config import PATTERN_CONFIG
from training_feedback.constants import PATTERN_KEY_MAX_CHARS, CorrectionKind, RefinementKind
from training_feedback.exceptions import StorageError, ValidationError
from training_feedback.models.correction import (
    CategoryValue,
    DescriptionValue,
    ExclusionFlagValue,
    ensure_value,
    parse_value,
)
from training_feedback.models.pattern import PatternAnalysisResult, PatternCandidate
from training_feedback.storage.contribution_store import ContributionStore
from training_feedback.storage.tables import ContributionRow, PatternRefinementRow
from training_feedback.utils.error_handling import create_item_error

logger = logging.getLogger(__name__)

PatternKey = tuple[str, str, str]


def normalize_pattern_key(text: str) -> str:
    """Normalize text into a stable key for matching recurring corrections."""
    key = text.lower().strip()
    key = re.sub(r"[^\w\s-]", "", key)  # keep word chars, whitespace, hyphen
    key = re.sub(r"\s+", "_", key)
    return key[:PATTERN_KEY_MAX_CHARS]


def extract_candidates(contribution: ContributionRow) -> list[PatternCandidate]:
    """Derive pattern candidates from a single approved contribution.

    Raises:
        ValidationError: If the stored values don't match the correction kind

    """
    kind = CorrectionKind(contribution.correction_kind)
    original = parse_value(kind, contribution.original_value)
    corrected = parse_value(kind, contribution.corrected_value)
    trade = contribution.trade_category

    if kind == CorrectionKind.DESCRIPTION:
        original = ensure_value(original, DescriptionValue)
        corrected = ensure_value(corrected, DescriptionValue)
        if original.text and corrected.text and original.text != corrected.text:
            return [
                PatternCandidate(
                    trade_category=trade,
                    refinement_kind=RefinementKind.TERMINOLOGY.value,
                    pattern_key=normalize_pattern_key(original.text),
                    pattern_value={"from": original.text, "to": corrected.text},
                )
            ]
        return []

    if kind == CorrectionKind.CATEGORY:
        original = ensure_value(original, CategoryValue)
        corrected = ensure_value(corrected, CategoryValue)
        if original.value and corrected.value and original.value != corrected.value:
            return [
                PatternCandidate(
                    trade_category=trade,
                    refinement_kind=RefinementKind.CATEGORY_RULE.value,
                    pattern_key=normalize_pattern_key(original.value),
                    pattern_value={"from": original.value, "to": corrected.value},
                )
            ]
        return []

    if kind == CorrectionKind.EXCLUSION_FLAG:
        original = ensure_value(original, ExclusionFlagValue)
        corrected = ensure_value(corrected, ExclusionFlagValue)
        if original.value is None or corrected.value is None or original.value == corrected.value:
            return []
        was, now = str(original.value).lower(), str(corrected.value).lower()
        return [
            PatternCandidate(
                trade_category=trade,
                refinement_kind=RefinementKind.EXTRACTION_RULE.value,
                pattern_key=f"exclusion_{was}_to_{now}",
                pattern_value={
                    "from": was,
                    "to": now,
                    "context": (
                        "Items like this were wrongly marked as excluded from scope"
                        if original.value
                        else "Items like this were wrongly included in scope"
                    ),
                },
            )
        ]

    if kind in (CorrectionKind.PRICE, CorrectionKind.QUANTITY, CorrectionKind.UNIT):
        # Anonymized figures do not generalize into rules
        return []

    raise ValidationError(f"Unsupported correction kind: {kind}")


class PatternAnalyzer:
    """Turns approved contributions into counted, promotable refinements."""

    def __init__(
        self,
        store: ContributionStore,
        session_factory: sessionmaker[Session],
        promote_threshold: int | None = None,
    ) -> None:
        self.store = store
        self._session_factory = session_factory
        if promote_threshold is None:
            promote_threshold = PATTERN_CONFIG["auto_promote_threshold"]
        self.promote_threshold = promote_threshold

    def find_patterns(self, trade_category: str | None = None) -> tuple[list[PatternCandidate], int]:
        """Aggregate pattern candidates over the full approved set.

        Counts are recomputed from scratch on every call, never incremented
        in place.

        Args:
            trade_category: Restrict to one trade, or None for all trades

        Returns:
            Tuple of (candidates with occurrence counts, number of
            contributions that could not be interpreted)

        """
        aggregated: dict[PatternKey, PatternCandidate] = {}
        errors = 0

        for contribution in self.store.approved(trade_category):
            try:
                candidates = extract_candidates(contribution)
            except (ValidationError, ValueError) as e:
                errors += 1
                failure = create_item_error(e, contribution.id, stage="pattern_extraction")
                logger.warning(f"Skipping contribution {contribution.id}: {failure['error']}")
                continue

            for candidate in candidates:
                existing = aggregated.get(candidate.key)
                if existing:
                    existing.occurrence_count += 1
                else:
                    aggregated[candidate.key] = candidate

        return list(aggregated.values()), errors

    def analyze(self, trade_category: str | None = None) -> PatternAnalysisResult:
        """Recompute pattern counts, persist them and promote frequent ones.

        A pattern is ``new`` if it has no stored row, ``updated`` if its
        count grew, and ``promoted`` the first time its count reaches the
        promotion threshold. Stored counts never decrease and active rows
        are never deactivated, so repeated runs are safe.

        Args:
            trade_category: Restrict to one trade, or None for all trades

        Returns:
            PatternAnalysisResult with new, updated and promoted candidates

        """
        candidates, errors = self.find_patterns(trade_category)
        result = PatternAnalysisResult(errors=errors)

        if not candidates:
            logger.info(f"No patterns found for {trade_category or 'all trades'}")
            return result

        now = datetime.now()
        try:
            with self._session_factory.begin() as session:
                existing = self._load_existing(session, trade_category)

                for candidate in candidates:
                    row = existing.get(candidate.key)

                    if row is None:
                        row = PatternRefinementRow(
                            trade_category=candidate.trade_category,
                            refinement_kind=candidate.refinement_kind,
                            pattern_key=candidate.pattern_key,
                            pattern_value=candidate.pattern_value,
                            occurrence_count=candidate.occurrence_count,
                            is_active=False,
                        )
                        session.add(row)
                        result.new.append(candidate)
                    elif candidate.occurrence_count > row.occurrence_count:
                        row.occurrence_count = candidate.occurrence_count
                        row.pattern_value = candidate.pattern_value
                        result.updated.append(candidate)
                    else:
                        # Count can only grow
                        candidate.occurrence_count = row.occurrence_count

                    if not row.is_active and row.occurrence_count >= self.promote_threshold:
                        row.is_active = True
                        row.auto_promoted_at = now
                        result.promoted.append(candidate)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to save patterns: {e}") from e

        logger.info(
            f"Pattern analysis for {trade_category or 'all trades'}: "
            f"{len(result.new)} new, {len(result.updated)} updated, "
            f"{len(result.promoted)} promoted, {errors} errors"
        )
        for candidate in result.promoted:
            logger.info(
                f"Promoted {candidate.refinement_kind} '{candidate.pattern_key}' "
                f"({candidate.occurrence_count} occurrences)"
            )

        return result

    def _load_existing(
        self, session: Session, trade_category: str | None
    ) -> dict[PatternKey, PatternRefinementRow]:
        query = select(PatternRefinementRow)
        if trade_category:
            query = query.where(PatternRefinementRow.trade_category == trade_category)

        return {
            (row.trade_category, row.refinement_kind, row.pattern_key): row
            for row in session.scalars(query)
        }
