"""Database-backed storage for correction embeddings with similarity search.
"""
import logging

import numpy as np
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from training_feedback.config import INDEXER_CONFIG
from training_feedback.exceptions import SearchUnavailableError, StorageError
from training_feedback.models.retrieval import CorrectionExample
from training_feedback.storage.tables import CorrectionEmbeddingRow

logger = logging.getLogger(__name__)


class EmbeddingStore:
    """Storage for correction embeddings, one per approved contribution."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def add_embedding(
        self,
        contribution_id: str,
        trade_category: str,
        correction_kind: str,
        embedded_text: str,
        embedding: list[float],
        quality_score: float | None = None,
    ) -> int:
        """Store the embedding for a contribution.

        Args:
            contribution_id: The approved contribution the embedding indexes
            trade_category: Trade the contribution belongs to
            correction_kind: Kind of correction
            embedded_text: The text the embedding was generated from
            embedding: The embedding vector
            quality_score: Training quality of the correction (0-1)

        Returns:
            The id of the new embedding row

        Raises:
            StorageError: If the row cannot be written, including when the
                contribution already has an embedding

        """
        high_quality = float(INDEXER_CONFIG["high_quality_score"])
        row = CorrectionEmbeddingRow(
            contribution_id=contribution_id,
            trade_category=trade_category,
            correction_kind=correction_kind,
            embedded_text=embedded_text,
            embedding=embedding,
            quality_score=quality_score,
            is_high_quality=quality_score is not None and quality_score >= high_quality,
        )

        try:
            with self._session_factory.begin() as session:
                session.add(row)
                session.flush()
                return row.id
        except IntegrityError as e:
            raise StorageError(f"Contribution {contribution_id} already has an embedding") from e
        except SQLAlchemyError as e:
            raise StorageError(f"Error storing embedding for {contribution_id}: {e}") from e

    def find_similar(
        self,
        trade_category: str,
        embedding: list[float],
        limit: int,
        high_quality_only: bool = True,
    ) -> list[CorrectionExample]:
        """Rank a trade's stored corrections by cosine similarity.

        Args:
            trade_category: Only corrections from this trade are searched
            embedding: The query embedding vector
            limit: Maximum number of results
            high_quality_only: Only search high-quality corrections

        Returns:
            List of examples sorted by similarity (highest first)

        Raises:
            SearchUnavailableError: If the stored vectors can't be compared
                with the query
            StorageError: If the rows cannot be read

        """
        query = self._filtered_query(trade_category, high_quality_only).order_by(
            CorrectionEmbeddingRow.id
        )
        rows = self._load_rows(query)
        if not rows:
            return []

        query_vector = np.asarray(embedding, dtype=float)
        dimensions = {len(row.embedding) for row in rows}
        if dimensions != {query_vector.shape[0]}:
            raise SearchUnavailableError(
                f"Stored embeddings for {trade_category} have dimensions {sorted(dimensions)}, "
                f"query has {query_vector.shape[0]}"
            )

        matrix = np.asarray([row.embedding for row in rows], dtype=float)
        similarities = self._cosine_similarities(query_vector, matrix)

        # Stable sort keeps insertion order among equal scores
        order = np.argsort(-similarities, kind="stable")[:limit]
        return [self._to_example(rows[i], float(similarities[i])) for i in order]

    def recent(
        self,
        trade_category: str,
        limit: int,
        high_quality_only: bool = True,
    ) -> list[CorrectionExample]:
        """Get a trade's most recently indexed corrections, similarity 0."""
        query = (
            self._filtered_query(trade_category, high_quality_only)
            .order_by(CorrectionEmbeddingRow.created_at.desc(), CorrectionEmbeddingRow.id.desc())
            .limit(limit)
        )
        return [self._to_example(row, 0.0) for row in self._load_rows(query)]

    def get_stats(self) -> dict:
        """Get embedding counts for monitoring.

        Returns:
            Dictionary with total, high-quality and per-trade counts

        """
        try:
            with self._session_factory() as session:
                total = session.scalar(select(func.count(CorrectionEmbeddingRow.id))) or 0
                high_quality = session.scalar(
                    select(func.count(CorrectionEmbeddingRow.id)).where(
                        CorrectionEmbeddingRow.is_high_quality.is_(True)
                    )
                ) or 0
                by_trade = dict(
                    session.execute(
                        select(CorrectionEmbeddingRow.trade_category, func.count()).group_by(
                            CorrectionEmbeddingRow.trade_category
                        )
                    ).all()
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Error reading embedding stats: {e}") from e

        return {
            "total_embeddings": total,
            "high_quality_count": high_quality,
            "embeddings_by_trade": by_trade,
        }

    def _filtered_query(self, trade_category: str, high_quality_only: bool):
        query = select(CorrectionEmbeddingRow).where(
            CorrectionEmbeddingRow.trade_category == trade_category
        )
        if high_quality_only:
            query = query.where(CorrectionEmbeddingRow.is_high_quality.is_(True))
        return query

    def _load_rows(self, query) -> list[CorrectionEmbeddingRow]:
        try:
            with self._session_factory() as session:
                return list(session.scalars(query))
        except SQLAlchemyError as e:
            raise StorageError(f"Error reading embeddings: {e}") from e

    def _cosine_similarities(self, vector: np.ndarray, matrix: np.ndarray) -> np.ndarray:
        """Calculate cosine similarity between a vector and each matrix row.

        Args:
            vector: Query embedding vector
            matrix: One stored embedding per row

        Returns:
            Array of similarity scores, 0 where either side is a zero vector

        """
        dot_products = matrix @ vector
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(vector)

        # Handle zero vectors
        similarities = np.zeros(len(matrix))
        nonzero = norms > 0
        similarities[nonzero] = dot_products[nonzero] / norms[nonzero]
        return similarities

    def _to_example(self, row: CorrectionEmbeddingRow, similarity: float) -> CorrectionExample:
        return CorrectionExample(
            id=row.id,
            contribution_id=row.contribution_id,
            trade_category=row.trade_category,
            correction_kind=row.correction_kind,
            embedded_text=row.embedded_text,
            similarity=similarity,
            is_high_quality=row.is_high_quality,
        )
