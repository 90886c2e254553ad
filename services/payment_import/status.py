"""
Payment status classification.

Processor statuses map to the donation status enum through an explicit
lookup table. Anything not in the table is routed to needs_attention with a
reason naming the raw value; nothing defaults to succeeded.
"""

from dataclasses import dataclass
from typing import Optional

from services.shared.helpers import clean_text

STATUS_MAP = {
    "succeeded": "succeeded",
    "paid": "succeeded",
    "failed": "failed",
    "refunded": "refunded",
    "canceled": "canceled",
    "cancelled": "canceled",
}

NEEDS_ATTENTION = "needs_attention"


@dataclass(frozen=True)
class StatusClassification:
    status: str
    reason: Optional[str] = None

    @property
    def needs_attention(self) -> bool:
        return self.status == NEEDS_ATTENTION


def classify_status(raw_status: Optional[str]) -> StatusClassification:
    """
    Classify a raw processor status.

    Examples:
        >>> classify_status(" Paid ")
        StatusClassification(status='succeeded', reason=None)
        >>> classify_status("disputed")
        StatusClassification(status='needs_attention', reason="Unrecognized payment status: 'disputed'")
    """
    cleaned = clean_text(raw_status)
    if cleaned is None:
        return StatusClassification(NEEDS_ATTENTION, "Missing payment status")

    status = STATUS_MAP.get(cleaned.lower())
    if status is None:
        return StatusClassification(
            NEEDS_ATTENTION, f"Unrecognized payment status: '{cleaned}'"
        )

    return StatusClassification(status)
