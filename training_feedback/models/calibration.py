"""Calibration data models for per-trade confidence thresholds."""

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class Thresholds:
    """Confidence cutoffs separating the low, medium and high bands."""

    low: float
    medium: float
    is_calibrated: bool = False


@dataclass
class CalibrationResult:
    """Outcome of calibrating a single trade category."""

    trade_category: str
    total_corrections: int
    corrections_at_high: int
    corrections_at_medium: int
    corrections_at_low: int
    current_low_threshold: float
    current_medium_threshold: float
    suggested_low_threshold: float
    suggested_medium_threshold: float
    updated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class CalibrationSummary:
    """Aggregate outcome of calibrating every trade category."""

    results: list[CalibrationResult] = field(default_factory=list)

    @property
    def total_categories(self) -> int:
        return len(self.results)

    @property
    def updated(self) -> int:
        return sum(1 for r in self.results if r.updated)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if not r.updated)

    @property
    def total_corrections_processed(self) -> int:
        return sum(r.total_corrections for r in self.results)

    def to_dict(self) -> dict[str, Any]:
        """Summary plus the threshold changes that were written."""
        return {
            "total_categories": self.total_categories,
            "updated": self.updated,
            "skipped": self.skipped,
            "total_corrections_processed": self.total_corrections_processed,
            "updated_categories": [
                {
                    "trade_category": r.trade_category,
                    "old": {"low": r.current_low_threshold, "medium": r.current_medium_threshold},
                    "new": {"low": r.suggested_low_threshold, "medium": r.suggested_medium_threshold},
                    "total_corrections": r.total_corrections,
                }
                for r in self.results
                if r.updated
            ],
        }
