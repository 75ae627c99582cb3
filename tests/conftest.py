"""Shared fixtures for the training feedback tests."""

import hashlib
import re
from unittest.mock import MagicMock

import pytest

from training_feedback.constants import ModerationState
from training_feedback.exceptions import ExternalServiceError
from training_feedback.models.correction import parse_correction
from training_feedback.processing.anonymizer import Anonymizer
from training_feedback.services.embedding_service import EmbeddingService
from training_feedback.services.embedding_store import EmbeddingStore
from training_feedback.storage.contribution_store import ContributionStore
from training_feedback.storage.database import create_db_engine, create_session_factory, init_db


class FakeEmbeddingService(EmbeddingService):
    """Deterministic bag-of-words embeddings, no network access."""

    def __init__(self, fail_on: str | None = None):
        super().__init__(client=MagicMock())
        self.fail_on = fail_on
        self.calls: list[str] = []

    def generate_embedding(self, content: str) -> list[float]:
        self.calls.append(content)
        if self.fail_on and self.fail_on in content:
            raise ExternalServiceError("Embedding provider unavailable")

        vector = [0.0] * self.dimensions
        for token in re.findall(r"\w+", content.lower()):
            index = int(hashlib.md5(token.encode()).hexdigest(), 16) % self.dimensions
            vector[index] += 1.0
        return vector


@pytest.fixture
def session_factory():
    """Create a session factory over a fresh in-memory database."""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def anonymizer():
    """Create an anonymizer with the built-in detectors."""
    return Anonymizer()


@pytest.fixture
def store(session_factory, anonymizer):
    """Create a ContributionStore on the in-memory database."""
    return ContributionStore(session_factory, anonymizer)


@pytest.fixture
def embedding_store(session_factory):
    """Create an EmbeddingStore on the in-memory database."""
    return EmbeddingStore(session_factory)


@pytest.fixture
def embedding_service():
    """Create a fake embedding service."""
    return FakeEmbeddingService()


@pytest.fixture
def failing_embedding_service():
    """Factory for fake services that fail on texts containing a marker."""

    def _make(fail_on):
        return FakeEmbeddingService(fail_on=fail_on)

    return _make


@pytest.fixture
def make_correction():
    """Factory for typed corrections with sensible defaults."""

    def _make(kind="description", original=None, corrected=None, **fields):
        defaults = {
            "description": ({"text": "elec panel"}, {"text": "Electrical panel"}),
            "category": ({"value": "Materials"}, {"value": "Labor"}),
            "price": ({"total_price": 7500}, {"total_price": 8200}),
            "exclusion_flag": ({"value": False}, {"value": True}),
            "quantity": ({"value": 10}, {"value": 12}),
            "unit": ({"value": "EA"}, {"value": "LF"}),
        }
        default_original, default_corrected = defaults[kind]
        data = {
            "correction_kind": kind,
            "trade_category": "Electrical",
            "document_category": "bid",
            "original_value": original if original is not None else default_original,
            "corrected_value": corrected if corrected is not None else default_corrected,
        }
        data.update(fields)
        return parse_correction(data)

    return _make


@pytest.fixture
def add_approved(store):
    """Store corrections and approve them, returning their ids."""

    def _add(*corrections):
        ids = []
        for correction in corrections:
            contribution_id = store.add_contribution(correction)
            store.moderate(contribution_id, ModerationState.APPROVED)
            ids.append(contribution_id)
        return ids

    return _add
