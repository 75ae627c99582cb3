"""Utility functions for calculating confidence band statistics."""

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass
class ConfidenceBandStatistics:
    """Container for corrected-item counts per confidence band."""

    total: int
    high: int
    medium: int
    low: int
    with_confidence: int
    average_confidence: float

    def to_display_string(self) -> str:
        """Format statistics for log output."""
        return (
            f"Total: {self.total} | H: {self.high} | M: {self.medium} | "
            f"L: {self.low} | Avg confidence: {self.average_confidence:.2f}"
        )


def calculate_band_statistics(
    confidences: Iterable[float | None],
    low_threshold: float,
    medium_threshold: float,
) -> ConfidenceBandStatistics:
    """Bucket the original confidences of corrected items into bands.

    Items without a recorded confidence count towards the total and are
    averaged in as zero, but fall in no band.

    Args:
        confidences: Original confidence of each corrected item
        low_threshold: Scores below this are in the low band
        medium_threshold: Scores at or above this are in the high band

    Returns:
        ConfidenceBandStatistics object containing calculated statistics

    """
    total = 0
    high = medium = low = 0
    scored = 0
    confidence_sum = 0.0

    for confidence in confidences:
        total += 1
        if confidence is None:
            continue

        scored += 1
        confidence_sum += confidence

        if confidence >= medium_threshold:
            high += 1
        elif confidence >= low_threshold:
            medium += 1
        else:
            low += 1

    return ConfidenceBandStatistics(
        total=total,
        high=high,
        medium=medium,
        low=low,
        with_confidence=scored,
        average_confidence=confidence_sum / total if total else 0.0,
    )
