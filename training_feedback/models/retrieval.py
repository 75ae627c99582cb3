"""Data models for the correction embedding index."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class CorrectionExample:
    """A past correction retrieved as few-shot guidance."""

    id: int
    contribution_id: str
    trade_category: str
    correction_kind: str
    embedded_text: str
    similarity: float
    is_high_quality: bool


@dataclass
class IndexResult:
    """Counts from one embedding indexer batch."""

    processed: int = 0
    errors: int = 0
    failures: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"processed": self.processed, "errors": self.errors}


@dataclass
class QualityScore:
    """Training usefulness of a single correction."""

    score: float  # 0-1 weighted overall score
    factors: dict[str, float]
    is_high_quality: bool
    notes: list[str] = field(default_factory=list)
