"""Runs the scheduled training jobs across all trade categories."""

import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

from sqlalchemy.orm import Session, sessionmaker

from training_feedback.exceptions import StorageError
from training_feedback.models.calibration import CalibrationSummary
from training_feedback.processing.embedding_indexer import EmbeddingIndexer
from training_feedback.processing.pattern_analyzer import PatternAnalyzer
from training_feedback.processing.threshold_calibrator import ThresholdCalibrator
from training_feedback.services.embedding_service import EmbeddingService
from training_feedback.services.embedding_store import EmbeddingStore
from training_feedback.storage.contribution_store import ContributionStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BatchRunner:
    """Wires the components together and runs them as batch jobs."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        embedding_service: EmbeddingService | None = None,
        num_workers: int = 1,
    ) -> None:
        """Initialize the runner.

        Args:
            session_factory: Session factory for the training database
            embedding_service: Embedding provider, only needed for indexing
            num_workers: Trade categories processed concurrently. SQLite
                databases always run serially.

        """
        self.num_workers = max(1, num_workers)
        bind = session_factory.kw.get("bind")
        if self.num_workers > 1 and bind is not None and bind.dialect.name == "sqlite":
            # SQLite allows one writer, and in-memory databases share a single connection
            logger.info(f"SQLite database, ignoring {self.num_workers} workers and running trades serially")
            self.num_workers = 1
        self.store = ContributionStore(session_factory)
        self.analyzer = PatternAnalyzer(self.store, session_factory)
        self.calibrator = ThresholdCalibrator(self.store, session_factory)
        self.embedding_store = EmbeddingStore(session_factory)
        self.embedding_service = embedding_service

    def _map_categories(self, func: Callable[[str], T], categories: list[str]) -> list[T]:
        # Each trade owns disjoint rows, so categories can run side by side
        if self.num_workers == 1:
            return [func(c) for c in categories]
        with ThreadPoolExecutor(max_workers=self.num_workers) as executor:
            return list(executor.map(func, categories))

    def run_pattern_analysis(self) -> dict[str, Any]:
        """Analyze patterns for every trade with approved contributions"""
        start_time = time.time()
        categories = self.calibrator.known_trade_categories()

        def analyze(trade_category: str) -> tuple[str, dict[str, Any] | None]:
            try:
                return trade_category, self.analyzer.analyze(trade_category).to_dict()
            except StorageError as e:
                logger.error(f"Pattern analysis failed for {trade_category}: {e!s}")
                return trade_category, None

        by_trade: dict[str, dict[str, Any]] = {}
        failed: list[str] = []
        for trade_category, result in self._map_categories(analyze, categories):
            if result is None:
                failed.append(trade_category)
            elif result["analyzed"] > 0 or result["errors"] > 0:
                by_trade[trade_category] = result

        summary = {
            "total_analyzed": sum(r["analyzed"] for r in by_trade.values()),
            "total_new": sum(r["new"] for r in by_trade.values()),
            "total_updated": sum(r["updated"] for r in by_trade.values()),
            "total_promoted": sum(r["promoted"] for r in by_trade.values()),
            "trades_processed": len(by_trade),
            "errors": sum(r["errors"] for r in by_trade.values()) + len(failed),
            "failed_trades": failed,
            "elapsed_seconds": round(time.time() - start_time, 2),
        }
        logger.info(
            f"Pattern analysis complete. Analyzed: {summary['total_analyzed']}, "
            f"New: {summary['total_new']}, Updated: {summary['total_updated']}, "
            f"Promoted: {summary['total_promoted']}"
        )
        return {"summary": summary, "by_trade": by_trade}

    def run_calibration(self, force: bool = False) -> CalibrationSummary:
        """Calibrate thresholds for every known trade"""
        categories = self.calibrator.known_trade_categories()
        results = self._map_categories(lambda c: self.calibrator.calibrate(c, force), categories)
        summary = CalibrationSummary(results=results)
        logger.info(
            f"Calibration complete. Updated: {summary.updated}, Skipped: {summary.skipped}"
        )
        return summary

    def run_indexing(self, batch_size: int | None = None) -> dict[str, Any]:
        """Index one batch of approved contributions and report index stats"""
        if self.embedding_service is None:
            raise ValueError("An embedding service is required for indexing")

        indexer = EmbeddingIndexer(self.store, self.embedding_store, self.embedding_service)
        result = indexer.index_batch(batch_size)

        report: dict[str, Any] = {"batch": result.to_dict()}
        try:
            report["stats"] = self.embedding_store.get_stats()
        except StorageError as e:
            logger.error(f"Could not read embedding stats: {e!s}")
        report["errors"] = result.errors
        return report

    def run_nightly(self, force: bool = False) -> dict[str, Any]:
        """Run pattern analysis and calibration for all trades"""
        patterns = self.run_pattern_analysis()
        calibration = self.run_calibration(force)

        try:
            moderation = self.store.count_by_state()
        except StorageError as e:
            logger.error(f"Could not count contributions: {e!s}")
            moderation = {}

        return {
            "patterns": patterns["summary"],
            "calibration": calibration.to_dict(),
            "moderation_queue": moderation,
            "errors": patterns["summary"]["errors"],
        }
