"""
Contribution Store: append-only record of anonymized corrections.
"""

import logging
from datetime import datetime

from sqlalchemy import distinct, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from training_feedback.constants import ModerationState
from training_feedback.exceptions import NotFoundError, StorageError, ValidationError
from training_feedback.models.correction import Correction, value_to_dict
from training_feedback.processing.anonymizer import Anonymizer, get_anonymizer
from training_feedback.storage.tables import ContributionRow, CorrectionEmbeddingRow

logger = logging.getLogger(__name__)


class ContributionStore:
    """Stores anonymized contributions and their moderation state"""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        anonymizer: Anonymizer | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._anonymizer = anonymizer or get_anonymizer()

    def add_contribution(self, correction: Correction) -> str:
        """Anonymize a correction and store it pending moderation.

        Args:
            correction: The typed correction from the diff routine

        Returns:
            The new contribution id

        """
        anonymized = self._anonymizer.anonymize(correction)

        row = ContributionRow(
            trade_category=anonymized.trade_category,
            document_category=anonymized.document_category,
            correction_kind=anonymized.kind.value,
            original_value=value_to_dict(anonymized.original_value),
            corrected_value=value_to_dict(anonymized.corrected_value),
            redacted_text_snippet=anonymized.raw_text,
            ai_notes=anonymized.ai_notes,
            original_confidence=anonymized.original_confidence,
            was_marked_needs_review=anonymized.needs_review,
            moderation_state=ModerationState.PENDING.value,
        )

        try:
            with self._session_factory.begin() as session:
                session.add(row)
                session.flush()
                contribution_id = row.id
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to save contribution: {e}") from e

        logger.info(
            f"Stored {row.correction_kind} contribution {contribution_id} "
            f"for {row.trade_category} (pending)"
        )
        return contribution_id

    def add_contributions(self, corrections: list[Correction]) -> list[str]:
        """Anonymize and store multiple corrections"""
        return [self.add_contribution(c) for c in corrections]

    def get_contribution(self, contribution_id: str) -> ContributionRow:
        """Get a contribution by id.

        Raises:
            NotFoundError: If no contribution has this id

        """
        try:
            with self._session_factory() as session:
                row = session.get(ContributionRow, contribution_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load contribution {contribution_id}: {e}") from e

        if row is None:
            raise NotFoundError(f"Contribution {contribution_id} not found")
        return row

    def moderate(self, contribution_id: str, state: ModerationState | str) -> ContributionRow:
        """Move a pending contribution to approved or rejected.

        Args:
            contribution_id: The contribution to moderate
            state: The new moderation state

        Returns:
            The updated contribution

        Raises:
            NotFoundError: If no contribution has this id
            ValidationError: If the transition is not pending -> approved/rejected

        """
        try:
            new_state = ModerationState(state)
        except ValueError as e:
            raise ValidationError(f"Unknown moderation state: {state}") from e

        if new_state == ModerationState.PENDING:
            raise ValidationError("Contributions cannot be moved back to pending")

        try:
            with self._session_factory.begin() as session:
                row = session.get(ContributionRow, contribution_id)
                if row is None:
                    raise NotFoundError(f"Contribution {contribution_id} not found")
                if row.moderation_state != ModerationState.PENDING.value:
                    raise ValidationError(
                        f"Contribution {contribution_id} is already {row.moderation_state}"
                    )
                row.moderation_state = new_state.value
                row.moderated_at = datetime.now()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to moderate contribution {contribution_id}: {e}") from e

        logger.info(f"Contribution {contribution_id} -> {new_state.value}")
        return row

    def approved(self, trade_category: str | None = None) -> list[ContributionRow]:
        """Get approved contributions, oldest first"""
        query = select(ContributionRow).where(
            ContributionRow.moderation_state == ModerationState.APPROVED.value
        )
        if trade_category:
            query = query.where(ContributionRow.trade_category == trade_category)
        query = query.order_by(ContributionRow.contributed_at, ContributionRow.id)

        try:
            with self._session_factory() as session:
                return list(session.scalars(query))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load approved contributions: {e}") from e

    def approved_without_embedding(self, limit: int) -> list[ContributionRow]:
        """Get approved contributions that have no embedding yet.

        Single anti-join against the embedding table, oldest first.
        """
        query = (
            select(ContributionRow)
            .outerjoin(
                CorrectionEmbeddingRow,
                CorrectionEmbeddingRow.contribution_id == ContributionRow.id,
            )
            .where(
                ContributionRow.moderation_state == ModerationState.APPROVED.value,
                CorrectionEmbeddingRow.id.is_(None),
            )
            .order_by(ContributionRow.contributed_at, ContributionRow.id)
            .limit(limit)
        )

        try:
            with self._session_factory() as session:
                return list(session.scalars(query))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load unindexed contributions: {e}") from e

    def trade_categories(self) -> list[str]:
        """Get the distinct trade categories among approved contributions"""
        query = (
            select(distinct(ContributionRow.trade_category))
            .where(ContributionRow.moderation_state == ModerationState.APPROVED.value)
            .order_by(ContributionRow.trade_category)
        )

        try:
            with self._session_factory() as session:
                return list(session.scalars(query))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load trade categories: {e}") from e

    def count_by_state(self) -> dict[str, int]:
        """Get contribution counts per moderation state"""
        query = select(ContributionRow.moderation_state, func.count()).group_by(
            ContributionRow.moderation_state
        )

        try:
            with self._session_factory() as session:
                counts = dict(session.execute(query).all())
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to count contributions: {e}") from e

        return {state.value: counts.get(state.value, 0) for state in ModerationState}
