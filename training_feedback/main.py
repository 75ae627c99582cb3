import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .config import LOG_FORMAT, LOG_LEVEL
from .exceptions import StorageError
from .processing.batch_runner import BatchRunner
from .services.embedding_service import EmbeddingService
from .storage.database import create_db_engine, create_session_factory, init_db
from .utils.error_handling import has_errors

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    # stdout carries the JSON report, so logs go to stderr
    logging.basicConfig(
        level=LOG_LEVEL,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )

    # Suppress HTTP request logging from OpenAI/httpx
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run training feedback batch jobs")
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="SQLAlchemy database URL (defaults to DATABASE_URL)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Trade categories to process concurrently (SQLite runs serially)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("analyze", help="Mine correction patterns for all trades")

    calibrate = subparsers.add_parser("calibrate", help="Calibrate confidence thresholds")
    calibrate.add_argument("--force", action="store_true", help="Calibrate below the sample floor")

    index = subparsers.add_parser("index", help="Embed approved contributions")
    index.add_argument("--batch-size", type=int, default=None, help="Contributions per run")

    nightly = subparsers.add_parser("nightly", help="Run pattern analysis and calibration")
    nightly.add_argument("--force", action="store_true", help="Calibrate below the sample floor")

    return parser


def run(args: argparse.Namespace) -> dict[str, Any]:
    engine = create_db_engine(args.database_url)
    init_db(engine)
    session_factory = create_session_factory(engine)

    embedding_service = EmbeddingService() if args.command == "index" else None
    runner = BatchRunner(session_factory, embedding_service, num_workers=args.workers)

    logger.info(f"Starting {args.command} job")

    if args.command == "analyze":
        return runner.run_pattern_analysis()
    if args.command == "calibrate":
        return runner.run_calibration(force=args.force).to_dict()
    if args.command == "index":
        return runner.run_indexing(args.batch_size)
    return runner.run_nightly(force=args.force)


def main(argv: list[str] | None = None) -> int:
    """Run a training feedback job and print its JSON summary."""
    configure_logging()

    # Load environment variables from .env file
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(env_path)

    args = build_parser().parse_args(argv)
    try:
        report = run(args)
    except (ValueError, StorageError) as e:
        logger.error(f"{args.command} job failed: {e!s}")
        return 1

    print(json.dumps(report, indent=2, default=str))
    return 1 if has_errors(report) else 0


if __name__ == "__main__":
    sys.exit(main())
