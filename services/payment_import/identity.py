"""
Donor identity resolution for payment imports.

Resolves the Donor for a payment row from its email fields using a fixed,
deterministic order:
1. Primary (customer) email, if present
2. Billing-details email, if present
3. Synthetic "<CollapsedName>@<placeholder-domain>" for anonymous donors

Lookups are case-insensitive. Existing donors only change through the
explicit merge policy in merge_donor_fields(), which compares the row's
transaction timestamp with the donor's last_updated_at watermark.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Mapping, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError

from services.shared.db.schema import donors
from services.shared.helpers import clean_text, is_valid_email, normalize_email, synthesize_email
from services.shared.log_config import get_logger

from .errors import IdentityResolutionError

logger = get_logger(__name__)

EmailSource = Literal["primary", "billing", "synthetic"]

DEFAULT_DONOR_NAME = "Anonymous"

# Fields the merge policy may overwrite; email is the identity key
DONOR_MUTABLE_FIELDS = (
    "name", "phone", "address_line1", "address_line2",
    "city", "state", "zip_code", "country",
)


@dataclass
class DonorResolution:
    """Outcome of resolving one row's donor."""
    donor: Dict[str, Any]
    created: bool
    email_source: EmailSource
    updated_fields: Tuple[str, ...] = ()

    @property
    def donor_id(self) -> int:
        return self.donor["id"]


def select_donor_email(
    primary_email: Optional[str],
    billing_email: Optional[str],
    donor_name: Optional[str],
    placeholder_domain: str,
) -> Tuple[str, EmailSource]:
    """
    Pick the identity email for a row.

    Args:
        primary_email: Customer email column
        billing_email: Billing-details email column
        donor_name: Billing/display name, used for synthetic emails
        placeholder_domain: Domain for synthetic emails

    Returns:
        Tuple of (email, source)

    Examples:
        >>> select_donor_email("", "a@b.com", "J Smith", "mailinator.com")
        ('a@b.com', 'billing')
        >>> select_donor_email(None, None, "Jane Doe", "mailinator.com")
        ('JaneDoe@mailinator.com', 'synthetic')
    """
    primary = normalize_email(primary_email)
    if primary:
        return primary, "primary"

    billing = normalize_email(billing_email)
    if billing:
        return billing, "billing"

    return synthesize_email(donor_name, placeholder_domain), "synthetic"


def merge_donor_fields(
    existing: Mapping[str, Any],
    incoming: Mapping[str, Any],
    incoming_timestamp: datetime,
) -> Dict[str, Any]:
    """
    Decide which donor fields an incoming row may overwrite.

    Pure function. Rules:
    - Nothing changes unless incoming_timestamp is strictly newer than the
      stored last_updated_at (a missing watermark is older than anything)
    - Blank incoming values never overwrite stored values
    - Unchanged values are left out
    - When anything is newer, last_updated_at advances to incoming_timestamp

    Args:
        existing: Stored donor row (must include last_updated_at)
        incoming: Candidate values from the row (name, phone, address...)
        incoming_timestamp: Transaction timestamp of the row

    Returns:
        Dict of column -> new value; empty when the row is not newer

    Example:
        >>> merge_donor_fields(
        ...     {"name": "J Smith", "last_updated_at": datetime(2024, 1, 1)},
        ...     {"name": "John Smith"},
        ...     datetime(2024, 2, 1),
        ... )
        {'name': 'John Smith', 'last_updated_at': datetime.datetime(2024, 2, 1, 0, 0)}
    """
    watermark = existing.get("last_updated_at")
    if watermark is not None and incoming_timestamp <= watermark:
        return {}

    updates: Dict[str, Any] = {}
    for field_name in DONOR_MUTABLE_FIELDS:
        value = clean_text(incoming.get(field_name))
        if value is None:
            continue
        if value != existing.get(field_name):
            updates[field_name] = value

    updates["last_updated_at"] = incoming_timestamp
    return updates


def find_donor_by_email(conn: Connection, email: str) -> Optional[Dict[str, Any]]:
    """Case-insensitive donor lookup."""
    row = conn.execute(
        select(donors).where(func.lower(donors.c.email) == email.lower())
    ).mappings().first()
    return dict(row) if row else None


def resolve_donor(
    conn: Connection,
    donor_name: Optional[str],
    primary_email: Optional[str],
    billing_email: Optional[str],
    reference_timestamp: datetime,
    placeholder_domain: str,
    attributes: Optional[Mapping[str, Any]] = None,
) -> DonorResolution:
    """
    Find or create the donor for one payment row.

    Args:
        conn: Connection inside an open transaction
        donor_name: Billing/display name from the row
        primary_email: Customer email column
        billing_email: Billing-details email column (fallback)
        reference_timestamp: Transaction timestamp of the row (watermark)
        placeholder_domain: Domain for synthetic emails
        attributes: Optional contact fields (phone, address...)

    Returns:
        DonorResolution with the donor row and whether it was created

    Raises:
        IdentityResolutionError: If the chosen email is invalid or the donor
            cannot be persisted
    """
    email, source = select_donor_email(
        primary_email, billing_email, donor_name, placeholder_domain
    )

    if not is_valid_email(email):
        raise IdentityResolutionError(
            f"Invalid donor email '{email}' (source: {source})"
        )

    incoming: Dict[str, Any] = dict(attributes or {})
    incoming["name"] = donor_name

    existing = find_donor_by_email(conn, email)

    if existing:
        updates = merge_donor_fields(existing, incoming, reference_timestamp)
        if updates:
            updates["updated_at"] = datetime.now(timezone.utc).replace(tzinfo=None)
            conn.execute(
                donors.update().where(donors.c.id == existing["id"]).values(**updates)
            )
            existing.update(updates)
            logger.debug(
                "Donor updated from newer row",
                donor_id=existing["id"],
                fields=sorted(k for k in updates if k not in ("updated_at", "last_updated_at")),
            )
        changed = tuple(k for k in updates if k not in ("updated_at", "last_updated_at"))
        return DonorResolution(
            donor=existing,
            created=False,
            email_source=source,
            updated_fields=changed,
        )

    now = datetime.now(timezone.utc).replace(tzinfo=None)
    values: Dict[str, Any] = {
        field_name: clean_text(incoming.get(field_name))
        for field_name in DONOR_MUTABLE_FIELDS
    }
    values["name"] = values["name"] or DEFAULT_DONOR_NAME
    values.update(
        email=email,
        last_updated_at=reference_timestamp,
        created_at=now,
        updated_at=now,
    )

    try:
        donor_id = conn.execute(
            donors.insert().values(**values).returning(donors.c.id)
        ).scalar_one()
    except IntegrityError as e:
        raise IdentityResolutionError(
            f"Could not create donor '{email}': {e.orig}"
        ) from e

    values["id"] = donor_id
    logger.info("Donor created", donor_id=donor_id, email_source=source)

    return DonorResolution(donor=values, created=True, email_source=source)
