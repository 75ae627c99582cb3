"""SQLAlchemy tables for the training feedback loop.

Each processing component writes to its own table; all of them read
``training_contributions``.
"""

from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from training_feedback.constants import ModerationState
from training_feedback.storage.database import Base


class ContributionRow(Base):
    """Anonymized record of one human correction."""

    __tablename__ = "training_contributions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    trade_category: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    document_category: Mapped[str] = mapped_column(String(100), nullable=False)
    correction_kind: Mapped[str] = mapped_column(String(50), nullable=False)

    # Anonymized, type-specific payloads
    original_value: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    corrected_value: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    redacted_text_snippet: Mapped[str | None] = mapped_column(String(500))
    ai_notes: Mapped[str | None] = mapped_column(Text)

    original_confidence: Mapped[float | None] = mapped_column(Float)
    was_marked_needs_review: Mapped[bool | None] = mapped_column(Boolean)

    moderation_state: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ModerationState.PENDING.value, index=True
    )
    contributed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)
    moderated_at: Mapped[datetime | None] = mapped_column(DateTime)

    def __repr__(self) -> str:
        return (
            f"<ContributionRow(id='{self.id}', trade='{self.trade_category}', "
            f"kind='{self.correction_kind}', state='{self.moderation_state}')>"
        )


class PatternRefinementRow(Base):
    """A discovered correction rule, active once it recurs often enough."""

    __tablename__ = "pattern_refinements"
    __table_args__ = (
        UniqueConstraint("trade_category", "refinement_kind", "pattern_key", name="uq_pattern_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    trade_category: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    refinement_kind: Mapped[str] = mapped_column(String(50), nullable=False)
    pattern_key: Mapped[str] = mapped_column(String(50), nullable=False)
    pattern_value: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    occurrence_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    auto_promoted_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now, onupdate=datetime.now
    )


class ConfidenceThresholdRow(Base):
    """Calibrated confidence cutoffs for one trade category."""

    __tablename__ = "confidence_thresholds"

    trade_category: Mapped[str] = mapped_column(String(100), primary_key=True)
    low_threshold: Mapped[float] = mapped_column(Float, nullable=False)
    medium_threshold: Mapped[float] = mapped_column(Float, nullable=False)
    total_corrections: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    corrections_at_high: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    corrections_at_medium: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    corrections_at_low: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_calibrated_at: Mapped[datetime | None] = mapped_column(DateTime)


class CorrectionEmbeddingRow(Base):
    """Semantic index entry for one approved contribution."""

    __tablename__ = "correction_embeddings"
    __table_args__ = (
        Index("ix_correction_embeddings_trade_quality", "trade_category", "is_high_quality"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contribution_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("training_contributions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    trade_category: Mapped[str] = mapped_column(String(100), nullable=False)
    correction_kind: Mapped[str] = mapped_column(String(50), nullable=False)
    embedded_text: Mapped[str] = mapped_column(Text, nullable=False)
    embedding: Mapped[list[float]] = mapped_column(JSON, nullable=False)
    quality_score: Mapped[float | None] = mapped_column(Float)
    is_high_quality: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)
