"""
Pytest fixtures for payment_import tests.

Persistence tests run against a fresh in-memory SQLite database per test.
"""

import csv
from pathlib import Path
from typing import Dict, List

import pytest
from sqlalchemy.engine import Engine

from services.payment_import.settings import PaymentImportSettings
from services.shared.db import create_schema, get_engine

# Header of a Stripe "unified payments" export, trimmed to the columns we read
STRIPE_HEADER = [
    "id",
    "Created Formatted",
    "Amount",
    "Status",
    "Description",
    "Cust ID",
    "Cust Email",
    "Billing Details Name",
    "Billing Details Email",
    "Cust Subscription Data ID",
    "Cust Subscription Data Plan Nickname",
]


def stripe_row(**overrides) -> Dict[str, str]:
    """One export row with sensible defaults; keyword names use snake_case."""
    row = {
        "id": "",
        "Created Formatted": "2024-03-01 10:00:00 +0000",
        "Amount": "25.00",
        "Status": "Paid",
        "Description": "",
        "Cust ID": "",
        "Cust Email": "",
        "Billing Details Name": "Jane Doe",
        "Billing Details Email": "",
        "Cust Subscription Data ID": "",
        "Cust Subscription Data Plan Nickname": "",
    }
    keys = {
        "charge_id": "id",
        "created": "Created Formatted",
        "amount": "Amount",
        "status": "Status",
        "description": "Description",
        "customer_id": "Cust ID",
        "email": "Cust Email",
        "name": "Billing Details Name",
        "billing_email": "Billing Details Email",
        "subscription_id": "Cust Subscription Data ID",
        "plan_nickname": "Cust Subscription Data Plan Nickname",
    }
    for key, value in overrides.items():
        row[keys[key]] = value
    return row


def write_csv(path: Path, rows: List[Dict[str, str]], header: List[str] = STRIPE_HEADER) -> Path:
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=header)
        writer.writeheader()
        writer.writerows(rows)
    return path


@pytest.fixture
def engine() -> Engine:
    engine = get_engine("sqlite://")
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def import_settings() -> PaymentImportSettings:
    return PaymentImportSettings(
        _env_file=None,
        placeholder_email_domain="mailinator.com",
        reports_dir="unused",
    )


@pytest.fixture
def csv_file(tmp_path):
    """Factory writing export rows to a temporary CSV file."""
    def _write(rows, header=STRIPE_HEADER, name="export.csv"):
        return write_csv(tmp_path / name, rows, header)
    return _write


@pytest.fixture
def make_row():
    """Factory for export rows; see stripe_row()."""
    return stripe_row
