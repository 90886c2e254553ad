"""
Import summary and JSON reports for payment imports.

The summary keeps real failures (row_errors) and reviewer escalations
(needs_attention, duplicate_subscriptions) as separate figures.
Reports are saved to data/payment_import/reports/ with timestamped filenames.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from services.shared.log_config import get_logger

logger = get_logger(__name__)

# Default reports directory (relative to project root)
DEFAULT_REPORTS_DIR = Path("data/payment_import/reports")

STATUS_COUNTERS = ("succeeded", "failed", "refunded", "canceled", "needs_attention")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class RowError:
    """One row that could not be imported."""
    row: Optional[int]
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"row": self.row, "reason": self.reason}


@dataclass
class ImportSummary:
    """Counters and errors for one import run."""
    source: Optional[str] = None
    started_at: datetime = field(default_factory=_utc_now)
    finished_at: Optional[datetime] = None

    # Created donations per final status
    succeeded: int = 0
    failed: int = 0
    refunded: int = 0
    canceled: int = 0
    needs_attention: int = 0
    duplicate_subscriptions: int = 0

    # Rows already imported under the same idempotency key
    skipped: int = 0
    # Created donations with no idempotency key
    unkeyed: int = 0

    total_rows: int = 0
    processed: int = 0

    donors_created: int = 0
    children_created: int = 0
    projects_created: int = 0
    sponsorships_created: int = 0

    dry_run: bool = False
    cancelled: bool = False
    row_errors: List[RowError] = field(default_factory=list)

    def record_created(self, status: str, duplicate: bool = False, unkeyed: bool = False) -> None:
        """Count a newly written donation."""
        if status not in STATUS_COUNTERS:
            raise ValueError(f"Unknown donation status: {status}")
        setattr(self, status, getattr(self, status) + 1)
        if duplicate:
            self.duplicate_subscriptions += 1
        if unkeyed:
            self.unkeyed += 1
        self.processed += 1

    def record_skipped(self) -> None:
        self.skipped += 1
        self.processed += 1

    def record_error(self, row: Optional[int], reason: str) -> None:
        self.row_errors.append(RowError(row=row, reason=reason))

    def finish(self) -> "ImportSummary":
        self.finished_at = _utc_now()
        return self

    @property
    def failed_rows(self) -> int:
        return len(self.row_errors)

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def status(self) -> str:
        """ok, partial or error."""
        if self.row_errors or self.cancelled:
            return "partial" if self.processed > 0 else "error"
        return "ok"

    def to_dict(self) -> Dict[str, Any]:
        """Convert summary to dictionary for JSON serialization."""
        return {
            "source": self.source,
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": round(self.duration_seconds, 3),
            "dry_run": self.dry_run,
            "cancelled": self.cancelled,
            "total_rows": self.total_rows,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "refunded": self.refunded,
            "canceled": self.canceled,
            "needs_attention": self.needs_attention,
            "duplicate_subscriptions": self.duplicate_subscriptions,
            "skipped": self.skipped,
            "unkeyed": self.unkeyed,
            "donors_created": self.donors_created,
            "children_created": self.children_created,
            "projects_created": self.projects_created,
            "sponsorships_created": self.sponsorships_created,
            "row_errors": [e.to_dict() for e in self.row_errors],
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert summary to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImportSummary":
        """Rebuild a summary from to_dict() output."""
        finished = data.get("finished_at")
        summary = cls(
            source=data.get("source"),
            started_at=datetime.fromisoformat(data["started_at"]),
            finished_at=datetime.fromisoformat(finished) if finished else None,
            dry_run=data.get("dry_run", False),
            cancelled=data.get("cancelled", False),
            row_errors=[
                RowError(row=e.get("row"), reason=e.get("reason", ""))
                for e in data.get("row_errors", [])
            ],
        )
        for name in STATUS_COUNTERS + (
            "duplicate_subscriptions", "skipped", "unkeyed", "total_rows", "processed",
            "donors_created", "children_created", "projects_created", "sponsorships_created",
        ):
            setattr(summary, name, data.get(name, 0))
        return summary


def save_report(
    summary: ImportSummary,
    reports_dir: Optional[Union[str, Path]] = None,
) -> Path:
    """
    Save summary to a JSON file.

    File is named with the run's start time: YYYY-MM-DD_HHmmss.json

    Returns:
        Path to saved report file
    """
    reports_dir = Path(reports_dir) if reports_dir else DEFAULT_REPORTS_DIR
    reports_dir.mkdir(parents=True, exist_ok=True)

    filename = f"{summary.started_at.strftime('%Y-%m-%d_%H%M%S')}.json"
    filepath = reports_dir / filename

    with open(filepath, "w", encoding="utf-8") as f:
        f.write(summary.to_json())

    logger.info("Import report saved", path=str(filepath))
    return filepath


def load_report(filepath: Union[str, Path]) -> ImportSummary:
    """Load a summary from a JSON report file."""
    with open(filepath, "r", encoding="utf-8") as f:
        data = json.load(f)
    return ImportSummary.from_dict(data)


def list_reports(
    reports_dir: Optional[Union[str, Path]] = None,
    limit: int = 10,
) -> List[Dict[str, Any]]:
    """
    List recent reports with summary info, newest first.

    Unreadable files are logged and left out.
    """
    reports_dir = Path(reports_dir) if reports_dir else DEFAULT_REPORTS_DIR
    if not reports_dir.exists():
        return []

    report_files = sorted(reports_dir.glob("*.json"), reverse=True)[:limit]
    summaries = []

    for filepath in report_files:
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Skipping unreadable report", path=str(filepath), error=str(e))
            continue

        summaries.append({
            "filename": filepath.name,
            "started_at": data.get("started_at"),
            "status": data.get("status"),
            "processed": data.get("processed", 0),
            "needs_attention": data.get("needs_attention", 0),
            "errors_count": len(data.get("row_errors", [])),
        })

    return summaries
