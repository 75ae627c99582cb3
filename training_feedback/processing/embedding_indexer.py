"""Builds the semantic index over approved contributions."""

import logging

from training_feedback.config import INDEXER_CONFIG
from training_feedback.exceptions import ExternalServiceError, StorageError, ValidationError
from training_feedback.models.retrieval import IndexResult
from training_feedback.processing.embedding_text import build_embedding_text
from training_feedback.processing.quality_scorer import score_contribution
from training_feedback.services.embedding_service import EmbeddingService
from training_feedback.services.embedding_store import EmbeddingStore
from training_feedback.storage.contribution_store import ContributionStore
from training_feedback.utils.error_handling import create_item_error

logger = logging.getLogger(__name__)


class EmbeddingIndexer:
    """Embeds approved contributions that are not indexed yet."""

    def __init__(
        self,
        store: ContributionStore,
        embedding_store: EmbeddingStore,
        embedding_service: EmbeddingService,
    ) -> None:
        self.store = store
        self.embedding_store = embedding_store
        self.embedding_service = embedding_service

    def index_batch(self, batch_size: int | None = None) -> IndexResult:
        """Embed and store one bounded batch of unindexed contributions.

        Failures are isolated per contribution: they are counted and logged
        and the rest of the batch continues. Backlogs drain over repeated
        runs.

        Args:
            batch_size: Maximum contributions to process (default 100)

        Returns:
            IndexResult with processed and error counts

        """
        if batch_size is None:
            batch_size = int(INDEXER_CONFIG["batch_size"])
        result = IndexResult()

        try:
            pending = self.store.approved_without_embedding(batch_size)
        except StorageError as e:
            logger.error(f"Error fetching contributions to index: {e!s}")
            return result

        if not pending:
            logger.info("No contributions waiting for embeddings")
            return result

        logger.info(f"Indexing {len(pending)} contributions")

        for contribution in pending:
            try:
                embedded_text = build_embedding_text(contribution)
                embedding = self.embedding_service.generate_embedding(embedded_text)
                quality = score_contribution(contribution)

                self.embedding_store.add_embedding(
                    contribution_id=contribution.id,
                    trade_category=contribution.trade_category,
                    correction_kind=contribution.correction_kind,
                    embedded_text=embedded_text,
                    embedding=embedding,
                    quality_score=quality.score,
                )
                result.processed += 1
            except (ValidationError, ValueError, ExternalServiceError, StorageError) as e:
                result.errors += 1
                result.failures.append(create_item_error(e, contribution.id, stage="indexing"))
                logger.error(f"Error indexing contribution {contribution.id}: {e!s}")

        logger.info(f"Indexing complete. Processed: {result.processed}, Errors: {result.errors}")
        return result
