"""Pattern data models for learning from recurring corrections."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class PatternCandidate:
    """A recurring original -> corrected transformation for one trade."""

    trade_category: str
    refinement_kind: str  # "terminology", "category_rule", "extraction_rule"
    pattern_key: str
    pattern_value: dict[str, str]  # {"from": ..., "to": ..., "context"?: ...}
    occurrence_count: int = 1

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.trade_category, self.refinement_kind, self.pattern_key)

    def to_dict(self) -> dict[str, Any]:
        """Convert candidate to dictionary for serialization."""
        return {
            "trade_category": self.trade_category,
            "refinement_kind": self.refinement_kind,
            "pattern_key": self.pattern_key,
            "pattern_value": self.pattern_value,
            "occurrence_count": self.occurrence_count,
        }


@dataclass
class PatternAnalysisResult:
    """Outcome of one pattern analysis run."""

    new: list[PatternCandidate] = field(default_factory=list)
    updated: list[PatternCandidate] = field(default_factory=list)
    promoted: list[PatternCandidate] = field(default_factory=list)

    # Contributions whose values could not be interpreted
    errors: int = 0

    @property
    def analyzed(self) -> int:
        return len(self.new) + len(self.updated)

    def to_dict(self) -> dict[str, Any]:
        return {
            "analyzed": self.analyzed,
            "new": len(self.new),
            "updated": len(self.updated),
            "promoted": len(self.promoted),
            "errors": self.errors,
        }


@dataclass
class ActivePattern:
    """An active refinement as served to the prompt builder."""

    pattern_key: str
    pattern_value: dict[str, str]
    refinement_kind: str
    occurrence_count: int
