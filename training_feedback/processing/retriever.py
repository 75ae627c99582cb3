"""Retrieves similar past corrections as few-shot guidance for extraction."""

import logging

from training_feedback.config import INDEXER_CONFIG
from training_feedback.constants import MAX_PROMPT_EXAMPLES
from training_feedback.exceptions import ExternalServiceError, StorageError
from training_feedback.models.retrieval import CorrectionExample
from training_feedback.processing.embedding_text import build_query_text
from training_feedback.services.embedding_service import EmbeddingService
from training_feedback.services.embedding_store import EmbeddingStore

logger = logging.getLogger(__name__)


class Retriever:
    """Finds the nearest prior corrections for a new extraction context."""

    def __init__(self, embedding_store: EmbeddingStore, embedding_service: EmbeddingService) -> None:
        self.embedding_store = embedding_store
        self.embedding_service = embedding_service

    def retrieve(
        self,
        trade_category: str,
        query_text: str,
        k: int | None = None,
        high_quality_only: bool = True,
    ) -> list[CorrectionExample]:
        """Retrieve up to ``k`` similar corrections for a trade.

        Fails open: if the query can't be embedded or ranked search is
        unavailable, the ``k`` most recent corrections are returned with
        similarity 0. If even that fails, an empty list is returned.

        Args:
            trade_category: Trade of the document being extracted
            query_text: Text of the new extraction context
            k: Maximum number of examples (default 5)
            high_quality_only: Only consider high-quality corrections

        Returns:
            List of examples, most similar first

        """
        if k is None:
            k = int(INDEXER_CONFIG["default_retrieval_k"])

        try:
            query_embedding = self.embedding_service.generate_embedding(
                build_query_text(trade_category, query_text)
            )
            return self.embedding_store.find_similar(trade_category, query_embedding, k, high_quality_only)
        except (ExternalServiceError, StorageError) as e:
            logger.warning(f"Ranked search unavailable for {trade_category}, falling back to recent corrections: {e!s}")

        try:
            return self.embedding_store.recent(trade_category, k, high_quality_only)
        except StorageError as e:
            logger.error(f"Fallback retrieval failed for {trade_category}: {e!s}")
            return []

    def get_examples_prompt_section(
        self,
        trade_category: str,
        query_text: str,
        k: int | None = None,
        high_quality_only: bool = True,
    ) -> str:
        """Retrieve and format similar corrections for a trade"""
        return format_examples(self.retrieve(trade_category, query_text, k, high_quality_only))


def format_examples(examples: list[CorrectionExample]) -> str:
    """Format retrieved examples for injection into prompts.

    Args:
        examples: Retrieved corrections, most relevant first

    Returns:
        Prompt text with at most five examples, or an empty string

    """
    if not examples:
        return ""

    formatted = "\n\n".join(
        f"Example {i} ({example.correction_kind}):\n{example.embedded_text}"
        for i, example in enumerate(examples[:MAX_PROMPT_EXAMPLES], 1)
    )

    return (
        "\nSIMILAR CORRECTIONS FROM PAST ANALYSES:\n"
        "The following examples show corrections made to similar items:\n\n"
        f"{formatted}\n\n"
        "Apply these patterns when extracting similar items.\n"
    )
