"""
CLI entry point for the Payment Import service.

Usage:
    python -m services.payment_import exports/stripe_2024.csv
    python -m services.payment_import exports/stripe_2024.csv --create-schema
    python -m services.payment_import https://storage.example.org/export.csv --dry-run

The import summary is printed to stdout as JSON; logs go to stderr.
Exit code is 0 when the file was processed, whatever the row-level failures,
and 1 on unrecoverable errors.
"""

import argparse
import sys
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from services.shared.db import create_schema, get_engine
from services.shared.log_config import configure_logging, get_logger

from . import __version__
from .fetcher import FetchError
from .orchestrator import run_payment_import
from .report import save_report
from .settings import get_settings

logger = get_logger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="payment_import",
        description="Payment Import - Reconcile a payment processor CSV export into donations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import a local export
  python -m services.payment_import exports/stripe_2024.csv

  # Import into a fresh SQLite database
  python -m services.payment_import exports/stripe_2024.csv \\
      --database-url sqlite:///donations.db --create-schema

  # Parse and classify only, nothing is written
  python -m services.payment_import exports/stripe_2024.csv --dry-run
        """
    )

    parser.add_argument(
        "source",
        help="Path or http(s) URL of the CSV export"
    )

    parser.add_argument(
        "--database-url",
        help="Database connection string (default: DATABASE_URL)"
    )

    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create missing tables before importing"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse and classify rows without writing to the database"
    )

    parser.add_argument(
        "--report-dir",
        help="Save the summary as a timestamped JSON report in this directory"
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override LOG_LEVEL"
    )

    parser.add_argument(
        "--log-format",
        choices=["json", "text"],
        help="Override LOG_FORMAT"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the import from the command line.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = create_parser().parse_args(argv)
    config = get_settings()

    configure_logging(
        log_level=args.log_level,
        log_format=args.log_format,
        service_name=config.service_name,
    )

    database_url = args.database_url or config.database_url
    engine = None

    if not args.dry_run and not database_url:
        logger.error("No database configured; set DATABASE_URL or pass --database-url")
        return 1

    try:
        if not args.dry_run:
            engine = get_engine(database_url)

        if engine is not None and args.create_schema:
            create_schema(engine)

        summary = run_payment_import(
            args.source,
            engine,
            settings=config,
            dry_run=args.dry_run,
        )
    except FileNotFoundError as e:
        logger.error("Source file not found", source=args.source, error=str(e))
        return 1
    except FetchError as e:
        logger.error(
            "Could not load source",
            source=args.source,
            error=str(e),
            error_type=type(e).__name__,
        )
        return 1
    except SQLAlchemyError as e:
        logger.error("Database unavailable", error=str(e))
        return 1
    finally:
        if engine is not None:
            engine.dispose()

    print(summary.to_json())

    if args.report_dir:
        save_report(summary, args.report_dir)

    if summary.cancelled:
        return 1

    logger.info(
        "Payment import finished",
        status=summary.status,
        processed=summary.processed,
        failed_rows=len(summary.row_errors),
        needs_attention=summary.needs_attention,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
