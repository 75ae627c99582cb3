"""Per-trade calibration of extraction confidence thresholds.

A single global confidence cutoff is miscalibrated across trades with
different extraction accuracy, so each trade's cutoffs are recomputed from
the confidence levels of the items humans actually had to correct.
"""

import logging
from datetime import datetime
from decimal import ROUND_CEILING, Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from training_feedback.config import CALIBRATION_CONFIG
from training_feedback.constants import TRADE_CATEGORIES, ConfidenceBand
from training_feedback.exceptions import StorageError
from training_feedback.models.calibration import CalibrationResult, CalibrationSummary, Thresholds
from training_feedback.storage.contribution_store import ContributionStore
from training_feedback.storage.tables import ConfidenceThresholdRow
from training_feedback.utils.statistics import calculate_band_statistics

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLDS = Thresholds(
    low=float(CALIBRATION_CONFIG["default_low_threshold"]),
    medium=float(CALIBRATION_CONFIG["default_medium_threshold"]),
    is_calibrated=False,
)


def _round_up_2dp(value: float) -> float:
    # Round away float noise first so 0.95000000000001 doesn't become 0.96
    return float(Decimal(str(round(value, 6))).quantize(Decimal("0.01"), rounding=ROUND_CEILING))


def suggest_thresholds(
    average_corrected_confidence: float,
    current_medium: float,
) -> tuple[float, float]:
    """Calculate suggested thresholds from the corrected-item distribution.

    The medium threshold moves above the average confidence of items that
    needed correction and never drops below its current value.

    Args:
        average_corrected_confidence: Mean original confidence of corrected items
        current_medium: The trade's current medium threshold

    Returns:
        Tuple of (suggested_low, suggested_medium)

    """
    margin = float(CALIBRATION_CONFIG["medium_margin"])
    max_medium = float(CALIBRATION_CONFIG["max_medium_threshold"])
    min_low = float(CALIBRATION_CONFIG["min_low_threshold"])
    gap = float(CALIBRATION_CONFIG["band_gap"])

    suggested_medium = max(current_medium, _round_up_2dp(average_corrected_confidence + margin))
    suggested_medium = min(suggested_medium, max_medium)

    suggested_low = max(suggested_medium - gap, min_low)

    return round(suggested_low, 2), round(suggested_medium, 2)


def classify_confidence(score: float, thresholds: Thresholds) -> ConfidenceBand:
    """Bucket a raw model confidence score into a band"""
    if score >= thresholds.medium:
        return ConfidenceBand.HIGH
    if score >= thresholds.low:
        return ConfidenceBand.MEDIUM
    return ConfidenceBand.LOW


class ThresholdCalibrator:
    """Recomputes and serves per-trade confidence thresholds."""

    def __init__(self, store: ContributionStore, session_factory: sessionmaker[Session]) -> None:
        self.store = store
        self._session_factory = session_factory
        self.min_corrections = int(CALIBRATION_CONFIG["min_corrections"])

    def get_thresholds(self, trade_category: str) -> Thresholds:
        """Get thresholds for a trade, falling back to defaults.

        Never raises: a stale or default threshold degrades extraction
        quality without breaking it.
        """
        try:
            with self._session_factory() as session:
                row = session.get(ConfidenceThresholdRow, trade_category)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching thresholds for {trade_category}, using defaults: {e!s}")
            return DEFAULT_THRESHOLDS

        if row is None:
            return DEFAULT_THRESHOLDS

        return Thresholds(low=row.low_threshold, medium=row.medium_threshold, is_calibrated=True)

    def calibrate(self, trade_category: str, force: bool = False) -> CalibrationResult:
        """Calibrate confidence thresholds for a single trade.

        Thresholds are only written when there are enough approved
        corrections (or ``force`` is set) and the suggestion differs from
        the current values.

        Args:
            trade_category: The trade to calibrate
            force: Calibrate even below the minimum number of corrections

        Returns:
            CalibrationResult describing current and suggested thresholds

        """
        current = self.get_thresholds(trade_category)

        try:
            contributions = self.store.approved(trade_category)
        except StorageError as e:
            logger.error(f"Skipping calibration for {trade_category}: {e!s}")
            contributions = []

        stats = calculate_band_statistics(
            (c.original_confidence for c in contributions), current.low, current.medium
        )

        result = CalibrationResult(
            trade_category=trade_category,
            total_corrections=stats.total,
            corrections_at_high=stats.high,
            corrections_at_medium=stats.medium,
            corrections_at_low=stats.low,
            current_low_threshold=current.low,
            current_medium_threshold=current.medium,
            suggested_low_threshold=current.low,
            suggested_medium_threshold=current.medium,
        )

        if stats.total < self.min_corrections and not force:
            logger.debug(
                f"Not enough corrections to calibrate {trade_category} "
                f"({stats.total}/{self.min_corrections})"
            )
            return result

        suggested_low, suggested_medium = suggest_thresholds(stats.average_confidence, current.medium)
        result.suggested_low_threshold = suggested_low
        result.suggested_medium_threshold = suggested_medium

        if suggested_low == current.low and suggested_medium == current.medium:
            return result

        try:
            with self._session_factory.begin() as session:
                session.merge(
                    ConfidenceThresholdRow(
                        trade_category=trade_category,
                        low_threshold=suggested_low,
                        medium_threshold=suggested_medium,
                        total_corrections=stats.total,
                        corrections_at_high=stats.high,
                        corrections_at_medium=stats.medium,
                        corrections_at_low=stats.low,
                        last_calibrated_at=datetime.now(),
                    )
                )
        except SQLAlchemyError as e:
            logger.error(f"Error updating thresholds for {trade_category}: {e!s}")
            return result

        result.updated = True
        logger.info(
            f"Calibrated {trade_category} ({stats.to_display_string()}): "
            f"low {current.low} -> {suggested_low}, medium {current.medium} -> {suggested_medium}"
        )
        return result

    def calibrate_all(self, force: bool = False) -> CalibrationSummary:
        """Calibrate every known trade category independently"""
        summary = CalibrationSummary()
        for trade_category in self.known_trade_categories():
            summary.results.append(self.calibrate(trade_category, force))

        logger.info(
            f"Calibration complete. Updated: {summary.updated}, Skipped: {summary.skipped}, "
            f"Corrections processed: {summary.total_corrections_processed}"
        )
        return summary

    def known_trade_categories(self) -> list[str]:
        """Configured trades plus any other trade present in the store"""
        categories = list(TRADE_CATEGORIES)
        try:
            stored = self.store.trade_categories()
        except StorageError as e:
            logger.error(f"Could not list stored trade categories: {e!s}")
            stored = []
        categories.extend(c for c in stored if c not in categories)
        return categories
