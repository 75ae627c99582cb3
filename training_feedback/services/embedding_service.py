"""Embedding service for generating correction embeddings using OpenAI API.
"""
import logging
import os

from openai import OpenAI, OpenAIError

from training_feedback.config import MODEL_CONFIG
from training_feedback.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


class EmbeddingService:
    """Service for generating fixed-dimension embeddings using OpenAI."""

    def __init__(self, client: OpenAI | None = None) -> None:
        """Initialize the embedding service with an OpenAI client."""
        if client is None:
            api_key = os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ValueError("OPENAI_API_KEY environment variable not set")
            client = OpenAI(api_key=api_key)

        self.client = client
        self.model = str(MODEL_CONFIG["embedding_model"])
        self.dimensions = int(MODEL_CONFIG["embedding_dimensions"])
        self.max_chars = int(MODEL_CONFIG["max_chars"])

    def generate_embedding(self, content: str) -> list[float]:
        """Generate an embedding for text.

        Args:
            content: The text to embed

        Returns:
            List of float values representing the embedding

        Raises:
            ExternalServiceError: If the provider call fails or returns a
                vector of the wrong size

        """
        # Truncate content to avoid token limits
        truncated_content = content[:self.max_chars]

        try:
            response = self.client.embeddings.create(
                model=self.model,
                input=truncated_content,
                dimensions=self.dimensions,
            )
            embedding = list(response.data[0].embedding)
        except (OpenAIError, IndexError, AttributeError) as e:
            logger.error(f"Embedding generation error: {e!s}")
            raise ExternalServiceError(f"Embedding generation failed: {e!s}") from e

        if len(embedding) != self.dimensions:
            raise ExternalServiceError(
                f"Expected {self.dimensions}-dimension embedding, got {len(embedding)}"
            )

        return embedding
