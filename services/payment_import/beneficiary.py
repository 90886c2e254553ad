"""
Beneficiary extraction and sponsorship resolution.

Sponsorship payments name the sponsored child only in free text, e.g. the
plan nickname "Monthly Sponsorship Donation for Maria". This module:
- Extracts a child name with an explicit grammar (pure function)
- Finds or creates the Child by exact name
- Finds or creates the child's single sponsorship Project ("Sponsor <Name>")
- Links donor, child and project in an active Sponsorship

Extraction never guesses: lists of names, repeated "for" phrases, lowercase
words or reserved words all yield no beneficiary, and the donation is
imported as a general (unassigned) donation instead.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.engine import Connection

from services.shared.db import insert_or_skip
from services.shared.db.schema import children, projects, sponsorships
from services.shared.helpers import clean_text
from services.shared.log_config import get_logger

logger = get_logger(__name__)

# A name word: letters, optionally joined by an apostrophe or hyphen (O'Neil, Ana-Lucia)
_WORD = r"[^\W\d_]+(?:['’-][^\W\d_]+)*"

# "for <Word> [<Word>...]" closing the text, optionally followed by . or !
CHILD_NAME_PATTERN = re.compile(
    rf"\b(?i:for)\s+(?P<name>{_WORD}(?:\s+{_WORD})*)\s*[.!]?\s*$"
)

_FOR_PHRASE = re.compile(r"\b(?i:for)\s+(?=[^\W\d_])")

MAX_NAME_WORDS = 4

# Capitalized words that follow "for" in descriptions but are not children
NON_NAME_WORDS = frozenset({
    "a", "all", "an", "and", "building", "campaign", "charity", "children",
    "christmas", "donation", "donations", "education", "emergency",
    "everyone", "fund", "funds", "general", "gift", "invoice", "kids",
    "me", "mission", "monthly", "nonprofit", "operations", "or", "our",
    "payment", "program", "project", "projects", "relief", "scholarship",
    "school", "sponsorship", "subscription", "support", "the", "us", "you",
})

SPONSORSHIP_PROJECT_PREFIX = "Sponsor"


@dataclass
class BeneficiaryResolution:
    """Child and sponsorship project resolved from a description."""
    child: Dict[str, Any]
    project: Dict[str, Any]
    child_created: bool = False
    project_created: bool = False

    @property
    def created(self) -> bool:
        return self.child_created or self.project_created

    @property
    def child_id(self) -> int:
        return self.child["id"]

    @property
    def project_id(self) -> int:
        return self.project["id"]


def extract_child_name(text: Optional[str]) -> Optional[str]:
    """
    Extract a single child name from free text.

    Grammar: exactly one "for <Name>" phrase that ends the text, where
    <Name> is one to four capitalized words of letters (apostrophes and
    hyphens allowed inside a word) and none of them is a reserved word.

    Args:
        text: Description or plan nickname

    Returns:
        The child name, or None when there is no confident single match

    Examples:
        >>> extract_child_name("Monthly Sponsorship Donation for Maria")
        'Maria'
        >>> extract_child_name("General monthly gift") is None
        True
        >>> extract_child_name("Sponsorship for Maria, Jose") is None
        True
        >>> extract_child_name("Donation for Campaign 12") is None
        True
    """
    cleaned = clean_text(text)
    if not cleaned:
        return None

    if len(_FOR_PHRASE.findall(cleaned)) != 1:
        return None

    match = CHILD_NAME_PATTERN.search(cleaned)
    if not match:
        return None

    words = match.group("name").split()
    if len(words) > MAX_NAME_WORDS:
        return None

    for word in words:
        if not word[0].isupper():
            return None
        if word.casefold() in NON_NAME_WORDS:
            return None

    return " ".join(words)


def sponsorship_project_title(child_name: str) -> str:
    """Title of the sponsorship project for a child."""
    return f"{SPONSORSHIP_PROJECT_PREFIX} {child_name}"


def _find_child(conn: Connection, name: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        select(children).where(children.c.name == name)
    ).mappings().first()
    return dict(row) if row else None


def find_or_create_child(conn: Connection, name: str) -> Tuple[Dict[str, Any], bool]:
    """
    Find a Child by exact name or create it.

    Returns:
        Tuple of (child_row, created)
    """
    existing = _find_child(conn, name)
    if existing:
        return existing, False

    now = datetime.now(timezone.utc).replace(tzinfo=None)
    stmt = insert_or_skip(
        children,
        conflict_keys="name",
        payload={"name": name, "created_at": now, "updated_at": now},
        dialect=conn.dialect.name,
        returning=["id"],
    )
    new_id = conn.execute(stmt).scalar_one_or_none()

    if new_id is None:
        # Inserted concurrently between lookup and insert
        return _find_child(conn, name), False

    logger.info("Child created", child_id=new_id, child_name=name)
    return {"id": new_id, "name": name, "created_at": now, "updated_at": now}, True


def _find_child_project(conn: Connection, child_id: int) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        select(projects).where(projects.c.child_id == child_id)
    ).mappings().first()
    return dict(row) if row else None


def find_or_create_sponsorship_project(
    conn: Connection,
    child: Dict[str, Any],
) -> Tuple[Dict[str, Any], bool]:
    """
    Find or create the sponsorship project bound to a child.

    One project per child, titled "Sponsor <Name>".

    Returns:
        Tuple of (project_row, created)
    """
    existing = _find_child_project(conn, child["id"])
    if existing:
        return existing, False

    now = datetime.now(timezone.utc).replace(tzinfo=None)
    payload = {
        "title": sponsorship_project_title(child["name"]),
        "description": f"Sponsorship of {child['name']}. Auto-created from payment import.",
        "project_type": "sponsorship",
        "system": False,
        "child_id": child["id"],
        "created_at": now,
        "updated_at": now,
    }
    stmt = insert_or_skip(
        projects,
        payload=payload,
        dialect=conn.dialect.name,
        returning=["id"],
    )
    new_id = conn.execute(stmt).scalar_one_or_none()

    if new_id is None:
        return _find_child_project(conn, child["id"]), False

    payload["id"] = new_id
    logger.info("Sponsorship project created", project_id=new_id, child_id=child["id"])
    return payload, True


def resolve_beneficiary(
    conn: Connection,
    text: Optional[str],
) -> Optional[BeneficiaryResolution]:
    """
    Resolve the sponsored child and its project from free text.

    Args:
        conn: Connection inside an open transaction
        text: Plan nickname or description of the payment

    Returns:
        BeneficiaryResolution, or None when no child name is extracted

    Example:
        >>> with engine.begin() as conn:
        ...     result = resolve_beneficiary(conn, "Monthly Sponsorship Donation for Maria")
        >>> result.child["name"], result.project["title"]
        ('Maria', 'Sponsor Maria')
    """
    name = extract_child_name(text)
    if name is None:
        return None

    child, child_created = find_or_create_child(conn, name)
    project, project_created = find_or_create_sponsorship_project(conn, child)

    return BeneficiaryResolution(
        child=child,
        project=project,
        child_created=child_created,
        project_created=project_created,
    )


def ensure_sponsorship(
    conn: Connection,
    donor_id: int,
    child_id: int,
    project_id: int,
    amount_cents: int,
    start_date: date,
) -> Tuple[Dict[str, Any], bool]:
    """
    Find the active sponsorship of a donor for a child, or start one.

    The monthly amount of a new sponsorship is the first donation amount
    seen for that donor/child link.

    Returns:
        Tuple of (sponsorship_row, created)
    """
    query = select(sponsorships).where(
        sponsorships.c.donor_id == donor_id,
        sponsorships.c.child_id == child_id,
        sponsorships.c.end_date.is_(None),
    )
    existing = conn.execute(query).mappings().first()
    if existing:
        return dict(existing), False

    now = datetime.now(timezone.utc).replace(tzinfo=None)
    payload = {
        "donor_id": donor_id,
        "child_id": child_id,
        "project_id": project_id,
        "monthly_amount": amount_cents,
        "start_date": start_date,
        "end_date": None,
        "created_at": now,
        "updated_at": now,
    }
    new_id = conn.execute(
        sponsorships.insert().values(**payload).returning(sponsorships.c.id)
    ).scalar_one()

    payload["id"] = new_id
    logger.info(
        "Sponsorship created",
        sponsorship_id=new_id,
        donor_id=donor_id,
        child_id=child_id,
        monthly_amount=amount_cents,
    )
    return payload, True
