"""
Duplicate subscription detection.

A child should be sponsored through one recurring subscription. When a row
arrives for a child that already has donations under a different
subscription id, the donation is flagged and routed to needs_attention so an
operator can decide which subscription is the real one.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from services.shared.db.schema import donations


@dataclass
class DuplicateCheck:
    """Result of checking one row for a conflicting subscription."""
    conflicting_subscription_ids: List[str] = field(default_factory=list)

    @property
    def detected(self) -> bool:
        return bool(self.conflicting_subscription_ids)

    @property
    def reason(self) -> Optional[str]:
        if not self.detected:
            return None
        ids = ", ".join(self.conflicting_subscription_ids)
        return f"Child already has a different subscription: {ids}"


def find_conflicting_subscriptions(
    existing_ids: Iterable[Optional[str]],
    subscription_id: Optional[str],
) -> List[str]:
    """
    Return the existing subscription ids that conflict with subscription_id.

    Pure function. Blank ids are ignored and the result is sorted and
    de-duplicated, so the outcome does not depend on row order.

    Examples:
        >>> find_conflicting_subscriptions(["sub_A", "sub_A"], "sub_B")
        ['sub_A']
        >>> find_conflicting_subscriptions(["sub_A"], "sub_A")
        []
    """
    if not subscription_id:
        return []
    return sorted({
        existing for existing in existing_ids
        if existing and existing != subscription_id
    })


def detect_duplicate_subscription(
    conn: Connection,
    child_id: Optional[int],
    subscription_id: Optional[str],
) -> DuplicateCheck:
    """
    Check stored donations of a child for other subscription ids.

    Rows without a child or without a subscription id never conflict.
    """
    if child_id is None or not subscription_id:
        return DuplicateCheck()

    query = (
        select(donations.c.external_subscription_id)
        .where(
            donations.c.child_id == child_id,
            donations.c.external_subscription_id.isnot(None),
            donations.c.external_subscription_id != subscription_id,
        )
        .distinct()
    )
    existing = conn.execute(query).scalars().all()

    return DuplicateCheck(find_conflicting_subscriptions(existing, subscription_id))
