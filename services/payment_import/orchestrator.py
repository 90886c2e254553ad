"""
Orchestrator for the payment import pipeline.

Coordinates the complete flow:
1. Fetch raw records from source (file or URL)
2. Detect the column layout of the export
3. For each row, in file order:
   a. Parse into a ParsedPaymentRow
   b. Resolve the donor (own transaction)
   c. Resolve the beneficiary or the general/campaign project (own transaction)
   d. Classify status, check for duplicate subscriptions and write the
      donation idempotently (own transaction)
4. Return an ImportSummary

Row-level errors are recorded in the summary and never abort the batch.
Entities committed before a row fails stay committed. The batch as a whole
is not transactional.
"""

import time
import uuid
from pathlib import Path
from typing import Optional, Union

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from services.shared.log_config import get_logger, log_processing_batch

from .beneficiary import ensure_sponsorship, resolve_beneficiary
from .duplicates import detect_duplicate_subscription
from .errors import ImportRowError, MalformedRowError
from .fetcher import fetch
from .identity import resolve_donor
from .parser import ParsedPaymentRow, detect_columns, parse_all_rows, parse_row
from .projects import resolve_project
from .report import ImportSummary
from .settings import PaymentImportSettings, get_settings
from .status import NEEDS_ATTENTION, classify_status
from .writer import DonationPayload, WriteResult, link_sponsorship, write_donation

logger = get_logger(__name__)


def _join_reasons(*reasons: Optional[str]) -> Optional[str]:
    present = [r for r in reasons if r]
    return "; ".join(present) if present else None


def process_row(
    conn: Connection,
    row: ParsedPaymentRow,
    summary: ImportSummary,
    settings: PaymentImportSettings,
) -> WriteResult:
    """
    Resolve and write one parsed row.

    Each step commits on its own, so a donor or child created here stays
    in place even if the donation itself is rejected.

    Raises:
        ImportRowError: Row-level failure (identity, validation)
        SQLAlchemyError: Database failure while processing the row
    """
    with conn.begin():
        donor = resolve_donor(
            conn,
            donor_name=row.donor_name,
            primary_email=row.primary_email,
            billing_email=row.billing_email,
            reference_timestamp=row.transaction_at,
            placeholder_domain=settings.placeholder_email_domain,
            attributes=row.donor_attributes(),
        )
    if donor.created:
        summary.donors_created += 1

    with conn.begin():
        beneficiary = resolve_beneficiary(conn, row.beneficiary_text)
        if beneficiary is not None:
            project_id = beneficiary.project_id
            child_id = beneficiary.child_id
            summary.children_created += int(beneficiary.child_created)
            summary.projects_created += int(beneficiary.project_created)
        else:
            project, project_created = resolve_project(conn, row.beneficiary_text)
            project_id = project["id"]
            child_id = None
            summary.projects_created += int(project_created)

    classification = classify_status(row.raw_status)

    with conn.begin():
        duplicate = detect_duplicate_subscription(conn, child_id, row.subscription_id)
        status = NEEDS_ATTENTION if duplicate.detected else classification.status

        payload = DonationPayload(
            amount=row.amount_cents,
            date=row.transaction_date,
            donor_id=donor.donor_id,
            status=status,
            project_id=project_id,
            child_id=child_id,
            description=row.description or row.plan_nickname,
            payment_method=settings.default_payment_method,
            external_charge_id=row.charge_id,
            external_customer_id=row.customer_id,
            external_subscription_id=row.subscription_id,
            duplicate_subscription_detected=duplicate.detected,
            needs_attention_reason=_join_reasons(classification.reason, duplicate.reason),
        )
        result = write_donation(conn, payload)

        if result.created and beneficiary is not None:
            sponsorship, sponsorship_created = ensure_sponsorship(
                conn,
                donor_id=donor.donor_id,
                child_id=beneficiary.child_id,
                project_id=beneficiary.project_id,
                amount_cents=row.amount_cents,
                start_date=row.transaction_date,
            )
            link_sponsorship(conn, result.donation_id, sponsorship["id"])
            summary.sponsorships_created += int(sponsorship_created)

    if result.created:
        summary.record_created(
            status,
            duplicate=duplicate.detected,
            unkeyed=result.idempotency_key == "none",
        )
        if duplicate.detected:
            logger.warning(
                "Duplicate subscription routed to review",
                row=row.row_number,
                donation_id=result.donation_id,
                reason=duplicate.reason,
            )
    else:
        summary.record_skipped()

    return result


def _dry_run(records, column_map, summary: ImportSummary) -> None:
    rows, errors = parse_all_rows(records, column_map)
    for error in errors:
        summary.record_error(error.row_number, error.reason)
    for row in rows:
        summary.record_created(classify_status(row.raw_status).status)


def run_payment_import(
    source: Union[str, Path],
    engine: Optional[Engine],
    settings: Optional[PaymentImportSettings] = None,
    dry_run: bool = False,
) -> ImportSummary:
    """
    Execute the payment import pipeline.

    Args:
        source: File path or URL to a processor CSV export
        engine: SQLAlchemy database engine (may be None for a dry run)
        settings: Import settings (default from environment)
        dry_run: Parse and classify only; nothing is written

    Returns:
        ImportSummary with per-status counts and row errors

    Raises:
        FileNotFoundError: If a local source does not exist
        FetchError: If the source cannot be downloaded or decoded
        UnsupportedFormatError: If the export lacks amount or date columns

    Example:
        >>> from services.shared.db import get_engine
        >>> engine = get_engine("postgresql://localhost/donations")
        >>> summary = run_payment_import("exports/stripe_2024.csv", engine)
        >>> print(summary.succeeded, summary.needs_attention, len(summary.row_errors))
    """
    settings = settings or get_settings()
    batch_id = uuid.uuid4().hex[:12]
    summary = ImportSummary(source=str(source), dry_run=dry_run)
    start = time.perf_counter()

    records = fetch(str(source), encoding=settings.csv_encoding)
    summary.total_rows = len(records)
    column_map = detect_columns(records[0].keys()) if records else {}

    logger.info(
        "Payment import started",
        batch_id=batch_id,
        source=str(source),
        total_rows=summary.total_rows,
        dry_run=dry_run,
    )

    if dry_run:
        _dry_run(records, column_map, summary)
    else:
        if engine is None:
            raise ValueError("engine is required unless dry_run is set")
        try:
            for row_number, record in enumerate(records, start=1):
                try:
                    row = parse_row(record, row_number, column_map)
                except MalformedRowError as e:
                    logger.warning("Malformed row", row=row_number, reason=e.reason)
                    summary.record_error(row_number, e.reason)
                    continue

                try:
                    with engine.connect() as conn:
                        process_row(conn, row, summary, settings)
                except ImportRowError as e:
                    logger.warning("Row import failed", row=row_number, reason=e.reason)
                    summary.record_error(row_number, e.reason)
                except SQLAlchemyError as e:
                    logger.error("Database error on row", row=row_number, error=str(e))
                    summary.record_error(row_number, f"Database error: {e}")
        except KeyboardInterrupt:
            summary.cancelled = True
            logger.warning(
                "Payment import cancelled; committed rows are kept",
                batch_id=batch_id,
                processed=summary.processed,
            )

    summary.finish()

    log_processing_batch(
        logger,
        batch_id=batch_id,
        items_processed=summary.processed,
        items_failed=len(summary.row_errors),
        duration_ms=(time.perf_counter() - start) * 1000,
        needs_attention=summary.needs_attention,
        duplicate_subscriptions=summary.duplicate_subscriptions,
        skipped=summary.skipped,
        cancelled=summary.cancelled,
    )

    return summary
