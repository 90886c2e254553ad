"""
Idempotent donation writer.

Donations are inserted with INSERT ... ON CONFLICT DO NOTHING RETURNING id.
The partial unique indexes on the donations table define the idempotency
keys:
- subscription_child: (external_subscription_id, child_id) when both exist
- donor_charge: (donor_id, external_charge_id) for any other row with a charge id
- none: no key; the row is always inserted

A conflict is reported as outcome "skipped", never raised.
"""

from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, Literal, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from services.shared.db import insert_or_skip
from services.shared.db.schema import DONATION_STATUSES, donations
from services.shared.log_config import get_logger

from .errors import DonationValidationError

logger = get_logger(__name__)

IdempotencyKey = Literal["subscription_child", "donor_charge", "none"]
WriteOutcome = Literal["created", "skipped"]


@dataclass
class DonationPayload:
    """Fully resolved donation, ready to be written."""
    amount: int
    date: date
    donor_id: int
    status: str
    project_id: Optional[int] = None
    child_id: Optional[int] = None
    sponsorship_id: Optional[int] = None
    description: Optional[str] = None
    payment_method: str = "stripe"
    external_charge_id: Optional[str] = None
    external_customer_id: Optional[str] = None
    external_subscription_id: Optional[str] = None
    duplicate_subscription_detected: bool = False
    needs_attention_reason: Optional[str] = None

    @property
    def idempotency_key(self) -> IdempotencyKey:
        if self.external_subscription_id and self.child_id is not None:
            return "subscription_child"
        if self.external_charge_id:
            return "donor_charge"
        return "none"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class WriteResult:
    outcome: WriteOutcome
    donation_id: Optional[int]
    idempotency_key: IdempotencyKey

    @property
    def created(self) -> bool:
        return self.outcome == "created"


def validate_payload(payload: DonationPayload, today: Optional[date] = None) -> None:
    """
    Reject payloads that break donation business rules.

    Raises:
        DonationValidationError: amount <= 0, date in the future or status
            outside the donation status enum
    """
    today = today or date.today()

    if payload.amount <= 0:
        raise DonationValidationError(
            f"Amount must be positive, got {payload.amount} cents"
        )
    if payload.date > today:
        raise DonationValidationError(
            f"Donation date {payload.date.isoformat()} is in the future"
        )
    if payload.status not in DONATION_STATUSES:
        raise DonationValidationError(f"Invalid donation status '{payload.status}'")


def _find_existing_id(conn: Connection, payload: DonationPayload) -> Optional[int]:
    key = payload.idempotency_key
    if key == "subscription_child":
        query = select(donations.c.id).where(
            donations.c.external_subscription_id == payload.external_subscription_id,
            donations.c.child_id == payload.child_id,
        )
    elif key == "donor_charge":
        query = select(donations.c.id).where(
            donations.c.donor_id == payload.donor_id,
            donations.c.external_charge_id == payload.external_charge_id,
        )
    else:
        return None
    return conn.execute(query.limit(1)).scalar_one_or_none()


def write_donation(conn: Connection, payload: DonationPayload) -> WriteResult:
    """
    Validate and insert a donation unless its idempotency key already exists.

    Args:
        conn: Connection inside an open transaction
        payload: Resolved donation

    Returns:
        WriteResult; donation_id is the existing id when skipped

    Raises:
        DonationValidationError: If the payload fails validation
    """
    validate_payload(payload)

    now = datetime.now(timezone.utc).replace(tzinfo=None)
    values = payload.to_dict()
    values.update(created_at=now, updated_at=now)

    stmt = insert_or_skip(
        donations,
        payload=values,
        dialect=conn.dialect.name,
        returning=["id"],
    )
    donation_id = conn.execute(stmt).scalar_one_or_none()
    key = payload.idempotency_key

    if donation_id is None:
        existing_id = _find_existing_id(conn, payload)
        logger.debug("Donation already imported", idempotency_key=key, donation_id=existing_id)
        return WriteResult("skipped", existing_id, key)

    if key == "none":
        logger.warning(
            "Donation has no idempotency key; re-importing this row will duplicate it",
            donation_id=donation_id,
        )

    return WriteResult("created", donation_id, key)


def link_sponsorship(conn: Connection, donation_id: int, sponsorship_id: int) -> None:
    """Attach a sponsorship to a freshly written donation."""
    conn.execute(
        donations.update()
        .where(donations.c.id == donation_id)
        .values(sponsorship_id=sponsorship_id, updated_at=datetime.now(timezone.utc).replace(tzinfo=None))
    )
