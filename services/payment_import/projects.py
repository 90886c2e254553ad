"""
Project assignment for donations without a sponsored child.

Descriptions such as "$25.00 - General Monthly Donation", invoice numbers or
blank text go to the system "General Donation" project. "Donation for
Campaign 12" goes to a "Campaign 12" project, created on first use. Any other
description names a project of its own: a non-system general project titled
with the first 100 characters of the text, left for an admin to review.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.engine import Connection

from services.shared.db.schema import projects
from services.shared.helpers import clean_text
from services.shared.log_config import get_logger

logger = get_logger(__name__)

GENERAL_PROJECT_TITLE = "General Donation"

NAMED_PROJECT_TITLE_LENGTH = 100

CAMPAIGN_PATTERN = re.compile(r"\bDonation for Campaign (\d+)\b", re.IGNORECASE)

# Descriptions known to mean "no specific project"
GENERAL_PATTERNS = (
    re.compile(r"^\$?[\d,]+(?:\.\d+)?\s*-\s*General Monthly Donation$", re.IGNORECASE),
    re.compile(r"^Invoice\b", re.IGNORECASE),
    re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$"),
    re.compile(r"^\d+$"),
    re.compile(r"^Subscription creation$", re.IGNORECASE),
    re.compile(r"^Captured via Payment app$", re.IGNORECASE),
    re.compile(r"^Payment for Stripe App$", re.IGNORECASE),
)


def classify_project(text: Optional[str]) -> Tuple[str, str]:
    """
    Map a donation description to a (kind, title) pair.

    kind is "general" for the shared system project, "campaign" for a
    numbered campaign, or "named" for a project titled after the description.

    Examples:
        >>> classify_project("Donation for Campaign 12")
        ('campaign', 'Campaign 12')
        >>> classify_project("Invoice 4F2A-0001")
        ('general', 'General Donation')
        >>> classify_project("Well Water Fund")
        ('named', 'Well Water Fund')
    """
    cleaned = clean_text(text)
    if not cleaned:
        return "general", GENERAL_PROJECT_TITLE

    for pattern in GENERAL_PATTERNS:
        if pattern.search(cleaned):
            return "general", GENERAL_PROJECT_TITLE

    match = CAMPAIGN_PATTERN.search(cleaned)
    if match:
        return "campaign", f"Campaign {int(match.group(1))}"

    return "named", cleaned[:NAMED_PROJECT_TITLE_LENGTH].rstrip()


def find_or_create_project(
    conn: Connection,
    kind: str,
    title: str,
    description: Optional[str] = None,
) -> Tuple[Dict[str, Any], bool]:
    """
    Find a general, campaign or named project by title, or create it.

    Named projects are stored as non-system general projects.

    Returns:
        Tuple of (project_row, created)
    """
    project_type = "campaign" if kind == "campaign" else "general"

    row = conn.execute(
        select(projects)
        .where(projects.c.project_type == project_type, projects.c.title == title)
        .order_by(projects.c.id)
    ).mappings().first()
    if row:
        return dict(row), False

    now = datetime.now(timezone.utc).replace(tzinfo=None)
    if kind == "named" and description:
        note = f"Auto-created from payment import. Original description: {description}"
    else:
        note = "Auto-created from payment import"
    payload = {
        "title": title,
        "description": note,
        "project_type": project_type,
        "system": kind == "general",
        "child_id": None,
        "created_at": now,
        "updated_at": now,
    }
    project_id = conn.execute(
        projects.insert().values(**payload).returning(projects.c.id)
    ).scalar_one()

    payload["id"] = project_id
    logger.info("Project created", project_id=project_id, title=title, kind=kind)
    return payload, True


def resolve_project(conn: Connection, text: Optional[str]) -> Tuple[Dict[str, Any], bool]:
    """Resolve the non-sponsorship project for a donation description."""
    kind, title = classify_project(text)
    return find_or_create_project(conn, kind, title, description=clean_text(text))
