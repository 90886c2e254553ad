"""
Review queue for imported donations.

Donations that are not succeeded (needs_attention, failed, refunded,
canceled) are listed for an operator, who may set any donation's status by
hand. Manual overrides are not gated by business rules.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Connection

from services.shared.db.schema import DONATION_STATUSES, donations
from services.shared.log_config import get_logger, log_database_operation

logger = get_logger(__name__)

REVIEWABLE_STATUSES = ("needs_attention", "failed", "refunded", "canceled")

DEFAULT_PER_PAGE = 25
MAX_PER_PAGE = 100


class ReviewQueryError(ValueError):
    """Invalid review queue filter or pagination."""
    pass


class InvalidStatusError(ValueError):
    """Status is not one of the donation statuses."""
    pass


class DonationNotFoundError(LookupError):
    """No donation with the given id."""
    pass


@dataclass
class ReviewPage:
    items: List[Dict[str, Any]]
    total_count: int
    total_pages: int
    current_page: int
    per_page: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "donations": [serialize_donation(item) for item in self.items],
            "meta": {
                "total_count": self.total_count,
                "total_pages": self.total_pages,
                "current_page": self.current_page,
                "per_page": self.per_page,
            },
        }


def serialize_donation(row: Dict[str, Any]) -> Dict[str, Any]:
    """Donation row with JSON-friendly dates."""
    return {
        key: value.isoformat() if isinstance(value, (date, datetime)) else value
        for key, value in row.items()
    }


def list_review_queue(
    conn: Connection,
    status: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = 1,
    per_page: int = DEFAULT_PER_PAGE,
) -> ReviewPage:
    """
    List donations awaiting review, newest first.

    Args:
        conn: Database connection
        status: One of REVIEWABLE_STATUSES; all of them when omitted
        date_from: Inclusive lower bound on donation date
        date_to: Inclusive upper bound on donation date
        page: 1-based page number
        per_page: Page size (1 to 100)

    Returns:
        ReviewPage with the donations and pagination metadata

    Raises:
        ReviewQueryError: Invalid status, date range or pagination
    """
    if status is not None and status not in REVIEWABLE_STATUSES:
        raise ReviewQueryError(
            f"Invalid status filter '{status}'. Expected one of: {', '.join(REVIEWABLE_STATUSES)}"
        )
    if date_from and date_to and date_from > date_to:
        raise ReviewQueryError("End date must be after or equal to start date")
    if page < 1:
        raise ReviewQueryError("page must be >= 1")
    if not 1 <= per_page <= MAX_PER_PAGE:
        raise ReviewQueryError(f"per_page must be between 1 and {MAX_PER_PAGE}")

    conditions = [
        donations.c.status == status if status
        else donations.c.status.in_(REVIEWABLE_STATUSES)
    ]
    if date_from:
        conditions.append(donations.c.date >= date_from)
    if date_to:
        conditions.append(donations.c.date <= date_to)

    total_count = conn.execute(
        select(func.count()).select_from(donations).where(*conditions)
    ).scalar_one()

    rows = conn.execute(
        select(donations)
        .where(*conditions)
        .order_by(donations.c.date.desc(), donations.c.id.desc())
        .limit(per_page)
        .offset((page - 1) * per_page)
    ).mappings().all()

    return ReviewPage(
        items=[dict(row) for row in rows],
        total_count=total_count,
        total_pages=math.ceil(total_count / per_page) if total_count else 0,
        current_page=page,
        per_page=per_page,
    )


def update_donation_status(
    conn: Connection,
    donation_id: int,
    new_status: str,
) -> Dict[str, Any]:
    """
    Set a donation's status by operator decision.

    Returns:
        The updated donation row

    Raises:
        InvalidStatusError: new_status is not a donation status
        DonationNotFoundError: No donation with donation_id
    """
    if new_status not in DONATION_STATUSES:
        raise InvalidStatusError(
            f"Invalid status '{new_status}'. Expected one of: {', '.join(DONATION_STATUSES)}"
        )

    result = conn.execute(
        donations.update()
        .where(donations.c.id == donation_id)
        .values(status=new_status, updated_at=datetime.now(timezone.utc).replace(tzinfo=None))
    )
    if result.rowcount == 0:
        raise DonationNotFoundError(f"Donation {donation_id} not found")

    row = conn.execute(
        select(donations).where(donations.c.id == donation_id)
    ).mappings().one()

    log_database_operation(
        logger,
        "UPDATE",
        table="donations",
        rows_affected=result.rowcount,
        donation_id=donation_id,
        new_status=new_status,
    )
    return dict(row)
