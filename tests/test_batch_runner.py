"""Tests for the scheduled batch jobs and the command line entry point."""

import json
from unittest.mock import MagicMock

import pytest

from training_feedback.main import main
from training_feedback.processing.batch_runner import BatchRunner
from training_feedback.storage.database import create_db_engine, create_session_factory, init_db
from training_feedback.storage.tables import ContributionRow


@pytest.fixture
def runner(session_factory, embedding_service):
    """Create a BatchRunner with a fake embedding provider."""
    return BatchRunner(session_factory, embedding_service)


@pytest.fixture
def seeded(store, make_correction, add_approved):
    """Approve ten matching corrections and leave one pending."""
    add_approved(*[
        make_correction(
            "description",
            {"text": "elec panel"},
            {"text": "Electrical panel"},
            original_confidence=0.85,
        )
        for _ in range(10)
    ])
    store.add_contribution(make_correction())


class TestBatchRunner:
    """Test suite for BatchRunner."""

    @pytest.mark.usefixtures("seeded")
    def test_pattern_analysis(self, runner):
        """Test the pattern job summary."""
        report = runner.run_pattern_analysis()

        assert report["summary"]["total_new"] == 1
        assert report["summary"]["total_promoted"] == 1
        assert report["summary"]["errors"] == 0
        assert list(report["by_trade"]) == ["Electrical"]

    @pytest.mark.usefixtures("seeded")
    def test_calibration_below_floor(self, runner):
        """Test that ten corrections only calibrate when forced."""
        assert runner.run_calibration().updated == 0
        assert runner.run_calibration(force=True).updated == 1

    @pytest.mark.usefixtures("seeded")
    def test_nightly(self, runner):
        """Test the nightly report."""
        report = runner.run_nightly()

        assert report["patterns"]["total_promoted"] == 1
        assert report["calibration"]["updated"] == 0
        assert report["moderation_queue"] == {"pending": 1, "approved": 10, "rejected": 0}
        assert report["errors"] == 0

    @pytest.mark.usefixtures("seeded")
    def test_indexing(self, runner):
        """Test the indexing job report."""
        report = runner.run_indexing(batch_size=4)

        assert report["batch"] == {"processed": 4, "errors": 0}
        assert report["stats"]["total_embeddings"] == 4
        assert report["errors"] == 0

    def test_indexing_requires_service(self, session_factory):
        """Test that indexing without a provider is refused."""
        with pytest.raises(ValueError):
            BatchRunner(session_factory).run_indexing()

    def test_concurrent_map_keeps_order(self):
        """Test that worker threads return results in category order."""
        runner = BatchRunner(MagicMock(), num_workers=3)

        assert runner.num_workers == 3
        assert runner._map_categories(str.upper, ["a", "b", "c", "d"]) == ["A", "B", "C", "D"]

    def test_sqlite_runs_serially(self, session_factory):
        """Test that worker counts are ignored on SQLite."""
        assert BatchRunner(session_factory, num_workers=4).num_workers == 1

    @pytest.mark.usefixtures("seeded")
    def test_nightly_with_workers_in_memory(self, session_factory):
        """Test the nightly job with several workers on the shared in-memory database."""
        report = BatchRunner(session_factory, num_workers=4).run_nightly(force=True)

        assert report["errors"] == 0
        assert report["patterns"]["total_promoted"] == 1
        assert report["calibration"]["updated"] == 1


class TestMain:
    """Test suite for the command line entry point."""

    @pytest.fixture
    def database_url(self, tmp_path):
        """Create a file database with ten approved corrections."""
        url = f"sqlite:///{tmp_path / 'training.db'}"
        engine = create_db_engine(url)
        init_db(engine)
        with create_session_factory(engine).begin() as session:
            session.add_all(
                ContributionRow(
                    trade_category="HVAC",
                    document_category="bid",
                    correction_kind="category",
                    original_value={"value": "Materials"},
                    corrected_value={"value": "Equipment"},
                    original_confidence=0.9,
                    moderation_state="approved",
                )
                for _ in range(10)
            )
        engine.dispose()
        return url

    def test_nightly(self, database_url, capsys):
        """Test that the nightly job prints a JSON summary."""
        exit_code = main(["--database-url", database_url, "nightly"])

        report = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert report["patterns"]["total_promoted"] == 1
        assert report["moderation_queue"]["approved"] == 10

    def test_calibrate_force(self, database_url, capsys):
        """Test forcing calibration from the command line."""
        exit_code = main(["--database-url", database_url, "calibrate", "--force"])

        report = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert [c["trade_category"] for c in report["updated_categories"]] == ["HVAC"]

    def test_index_without_api_key(self, database_url, monkeypatch):
        """Test that indexing fails cleanly without credentials."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.setattr("training_feedback.main.load_dotenv", lambda *args, **kwargs: False)

        assert main(["--database-url", database_url, "index"]) == 1

    def test_nightly_with_workers(self, database_url, capsys):
        """Test that several workers on a file database give a clean report."""
        exit_code = main(["--database-url", database_url, "--workers", "4", "nightly", "--force"])

        report = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert report["errors"] == 0
        assert report["patterns"]["total_promoted"] == 1
        assert [c["trade_category"] for c in report["calibration"]["updated_categories"]] == ["HVAC"]
