"""
Table definitions for the donation tracker database.

SQLAlchemy Core tables shared by the import engine and the review API.
Uniqueness rules that make imports idempotent live here as (partial)
unique indexes so they hold for every writer, not only the importer.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    and_,
    func,
    or_,
)
from sqlalchemy.engine import Engine

DONATION_STATUSES = ("succeeded", "failed", "refunded", "canceled", "needs_attention")
PROJECT_TYPES = ("general", "campaign", "sponsorship")

metadata = MetaData()


donors = Table(
    "donors", metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False),
    Column("phone", String(64)),
    Column("address_line1", String(255)),
    Column("address_line2", String(255)),
    Column("city", String(128)),
    Column("state", String(128)),
    Column("zip_code", String(32)),
    Column("country", String(64)),
    Column("last_updated_at", DateTime),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    Column("updated_at", DateTime, nullable=False, server_default=func.current_timestamp()),
)

Index("uq_donors_email_lower", func.lower(donors.c.email), unique=True)


children = Table(
    "children", metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(255), nullable=False),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    Column("updated_at", DateTime, nullable=False, server_default=func.current_timestamp()),
)

Index("uq_children_name", children.c.name, unique=True)


projects = Table(
    "projects", metadata,
    Column("id", Integer, primary_key=True),
    Column("title", String(255), nullable=False),
    Column("description", Text),
    Column("project_type", String(32), nullable=False, server_default="general"),
    Column("system", Boolean, nullable=False, server_default="0"),
    Column("child_id", Integer, ForeignKey("children.id")),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    Column("updated_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    CheckConstraint(
        "project_type IN ('general', 'campaign', 'sponsorship')",
        name="ck_projects_project_type",
    ),
)

Index("ix_projects_title", projects.c.title)

Index(
    "uq_projects_child",
    projects.c.child_id,
    unique=True,
    postgresql_where=projects.c.child_id.isnot(None),
    sqlite_where=projects.c.child_id.isnot(None),
)


sponsorships = Table(
    "sponsorships", metadata,
    Column("id", Integer, primary_key=True),
    Column("donor_id", Integer, ForeignKey("donors.id"), nullable=False),
    Column("child_id", Integer, ForeignKey("children.id"), nullable=False),
    Column("project_id", Integer, ForeignKey("projects.id"), nullable=False),
    Column("monthly_amount", Integer, nullable=False),
    Column("start_date", Date),
    Column("end_date", Date),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    Column("updated_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    CheckConstraint("monthly_amount > 0", name="ck_sponsorships_monthly_amount"),
)

Index(
    "uq_sponsorships_active_donor_child",
    sponsorships.c.donor_id,
    sponsorships.c.child_id,
    unique=True,
    postgresql_where=sponsorships.c.end_date.is_(None),
    sqlite_where=sponsorships.c.end_date.is_(None),
)


donations = Table(
    "donations", metadata,
    Column("id", Integer, primary_key=True),
    Column("amount", Integer, nullable=False),
    Column("date", Date, nullable=False),
    Column("donor_id", Integer, ForeignKey("donors.id"), nullable=False),
    Column("project_id", Integer, ForeignKey("projects.id")),
    Column("sponsorship_id", Integer, ForeignKey("sponsorships.id")),
    Column("child_id", Integer, ForeignKey("children.id")),
    Column("description", Text),
    Column("payment_method", String(32), nullable=False, server_default="stripe"),
    Column("external_charge_id", String(255)),
    Column("external_customer_id", String(255)),
    Column("external_subscription_id", String(255)),
    Column("status", String(32), nullable=False, server_default="succeeded"),
    Column("duplicate_subscription_detected", Boolean, nullable=False, server_default="0"),
    Column("needs_attention_reason", Text),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    Column("updated_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    CheckConstraint("amount > 0", name="ck_donations_amount_positive"),
    CheckConstraint(
        "status IN ('succeeded', 'failed', 'refunded', 'canceled', 'needs_attention')",
        name="ck_donations_status",
    ),
)

Index("ix_donations_status", donations.c.status)
Index("ix_donations_date", donations.c.date)
Index("ix_donations_child_id", donations.c.child_id)

# Recurring sponsorships: one donation per subscription and child
_subscription_child_guard = and_(
    donations.c.external_subscription_id.isnot(None),
    donations.c.child_id.isnot(None),
)

Index(
    "uq_donations_subscription_child",
    donations.c.external_subscription_id,
    donations.c.child_id,
    unique=True,
    postgresql_where=_subscription_child_guard,
    sqlite_where=_subscription_child_guard,
)

# Every other keyed row: one donation per donor and processor charge
_donor_charge_guard = and_(
    donations.c.external_charge_id.isnot(None),
    or_(
        donations.c.external_subscription_id.is_(None),
        donations.c.child_id.is_(None),
    ),
)

Index(
    "uq_donations_donor_charge",
    donations.c.donor_id,
    donations.c.external_charge_id,
    unique=True,
    postgresql_where=_donor_charge_guard,
    sqlite_where=_donor_charge_guard,
)


def create_schema(engine: Engine) -> None:
    """Create all tables and indexes that do not exist yet."""
    metadata.create_all(engine)
