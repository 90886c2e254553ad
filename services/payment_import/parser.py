"""
Parser for payment processor CSV exports.

Converts raw records (one dict per CSV row) into typed ParsedPaymentRow
objects with:
- Whitespace/unicode normalization of every field
- Amount normalization (to integer minor units, e.g. cents)
- Transaction timestamp parsing (normalized to naive UTC)
- Detection of which email columns are populated

Column names differ between processors and export presets, so the header is
format-detected once per file through COLUMN_ALIASES.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional, Tuple

from services.shared.helpers import clean_text, normalize_email

from .errors import MalformedRowError
from .fetcher import UnsupportedFormatError

logger = logging.getLogger(__name__)


# Maps canonical field name to list of possible column names in source data.
# Matching is case-insensitive and ignores repeated whitespace.
COLUMN_ALIASES: Dict[str, List[str]] = {
    "amount": [
        "Amount", "Gross", "Transaction Amount", "Payment Amount",
    ],
    "created_at": [
        "Created Formatted", "Created (UTC)", "Created date (UTC)",
        "Created", "Transaction Date", "Date",
    ],
    "status": [
        "Status", "Payment Status", "Charge Status",
    ],
    "primary_email": [
        "Cust Email", "Customer Email", "Email",
    ],
    "billing_email": [
        "Billing Details Email", "Billing Email",
    ],
    "donor_name": [
        "Billing Details Name", "Customer Name", "Cust Name", "Name",
    ],
    "description": [
        "Description", "Statement Descriptor",
    ],
    "plan_nickname": [
        "Cust Subscription Data Plan Nickname", "Plan Nickname",
        "Subscription Plan Nickname",
    ],
    "subscription_id": [
        "Cust Subscription Data ID", "Subscription ID", "Subscription",
    ],
    "charge_id": [
        "Transaction ID", "Charge ID", "id",
    ],
    "customer_id": [
        "Cust ID", "Customer ID",
    ],
    "phone": [
        "Cust Phone", "Customer Phone", "Billing Details Phone",
    ],
    "address_line1": [
        "Billing Details Address Line 1", "Billing Details Address Line1",
        "Billing Address Line 1",
    ],
    "address_line2": [
        "Billing Details Address Line 2", "Billing Details Address Line2",
        "Billing Address Line 2",
    ],
    "city": [
        "Billing Details Address City", "Billing Address City",
    ],
    "state": [
        "Billing Details Address State", "Billing Detail Address State",
        "Billing Address State",
    ],
    "zip_code": [
        "Billing Details Address Postal Code", "Billing Address Postal Code",
    ],
    "country": [
        "Billing Details Address Country", "Billing Address Country",
    ],
}

REQUIRED_FIELDS = ("amount", "created_at")

EMAIL_FIELDS = ("primary_email", "billing_email")

DONOR_ATTRIBUTE_FIELDS = (
    "phone", "address_line1", "address_line2",
    "city", "state", "zip_code", "country",
)


@dataclass
class ParsedPaymentRow:
    """
    Normalized intermediate record for one CSV row.

    Blank source cells are None. amount_cents may be zero or negative;
    the writer validates business rules.
    """
    row_number: int
    amount_cents: int
    transaction_at: datetime

    donor_name: Optional[str] = None
    primary_email: Optional[str] = None
    billing_email: Optional[str] = None

    description: Optional[str] = None
    plan_nickname: Optional[str] = None

    raw_status: Optional[str] = None
    subscription_id: Optional[str] = None
    charge_id: Optional[str] = None
    customer_id: Optional[str] = None

    phone: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None

    @property
    def transaction_date(self) -> date:
        return self.transaction_at.date()

    @property
    def beneficiary_text(self) -> Optional[str]:
        """Plan nickname first, description as fallback."""
        return self.plan_nickname or self.description

    @property
    def populated_email_fields(self) -> List[str]:
        return [name for name in EMAIL_FIELDS if getattr(self, name)]

    def donor_attributes(self) -> Dict[str, Optional[str]]:
        """Contact fields that may update an existing donor."""
        attributes = {"name": self.donor_name}
        for name in DONOR_ATTRIBUTE_FIELDS:
            attributes[name] = getattr(self, name)
        return attributes


def _normalize_header(header: Any) -> str:
    text = str(header).replace("\ufeff", "")
    return " ".join(text.split()).lower()


def detect_columns(headers: Iterable[Any]) -> Dict[str, str]:
    """
    Map canonical field names to the actual header names of an export.

    Args:
        headers: Column names from the CSV header

    Returns:
        Dict of canonical field -> source column name (only detected fields)

    Raises:
        UnsupportedFormatError: If amount or date columns cannot be found

    Example:
        >>> detect_columns(["Amount", "Created Formatted", "Cust Email"])
        {'amount': 'Amount', 'created_at': 'Created Formatted', 'primary_email': 'Cust Email'}
    """
    by_normalized: Dict[str, str] = {}
    for header in headers:
        by_normalized.setdefault(_normalize_header(header), header)

    column_map: Dict[str, str] = {}
    for field_name, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            source = by_normalized.get(_normalize_header(alias))
            if source is not None:
                column_map[field_name] = source
                break

    missing = [name for name in REQUIRED_FIELDS if name not in column_map]
    if missing:
        raise UnsupportedFormatError(
            f"Unrecognized export format: no column for {missing}. "
            f"Tried: {[COLUMN_ALIASES[name] for name in missing]}"
        )

    return column_map


def _find_value(
    record: Dict[str, Any],
    column_map: Dict[str, str],
    field_name: str,
) -> Optional[str]:
    """Return the cleaned value for a canonical field, None if absent or blank."""
    column = column_map.get(field_name)
    if column is None:
        return None
    return clean_text(record.get(column))


def _parse_amount(value: Optional[str]) -> Optional[int]:
    """
    Parse amount string into integer minor units.

    Handles:
    - Currency symbols and codes ($, USD)
    - Thousand separators (1,234.56) and decimal commas (1.234,56 / 12,50)
    - Accounting negatives: (10.00)
    - Half-up rounding to the cent

    Examples:
        >>> _parse_amount("100.00")
        10000
        >>> _parse_amount("$1,234.5")
        123450
    """
    if not value:
        return None

    text = str(value).strip()

    negative = text.startswith("(") and text.endswith(")")
    text = text.strip("()")

    # Remove currency symbols, codes and spaces
    text = re.sub(r"[\s$€£]|[A-Za-z]{3}", "", text)

    if "." in text and "," in text:
        if text.rfind(",") > text.rfind("."):
            # 1.234,56 -> 1234.56
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        if re.match(r"^-?\d+,\d{1,2}$", text):
            text = text.replace(",", ".")
        else:
            text = text.replace(",", "")

    try:
        amount = Decimal(text)
    except InvalidOperation:
        logger.debug(f"Could not parse amount: {value}")
        return None

    if not amount.is_finite():
        return None

    cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return -cents if negative else cents


_TIMESTAMP_FORMATS = (
    "%Y-%m-%d %H:%M:%S %z",
    "%Y-%m-%d %H:%M %z",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%m/%d/%y %H:%M",
    "%m/%d/%y",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d",
    "%d-%b-%Y",
    "%b %d, %Y",
)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse transaction timestamp into a naive UTC datetime.

    Supports ISO-8601 (with "Z" or offsets), "YYYY-MM-DD HH:MM[:SS] [+HHMM]",
    US "MM/DD/YYYY[ HH:MM[:SS]]" and bare dates.
    """
    if not value:
        return None

    text = str(value).strip()
    parsed: Optional[datetime] = None

    iso = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        parsed = datetime.fromisoformat(iso)
    except ValueError:
        for fmt in _TIMESTAMP_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        logger.debug(f"Could not parse timestamp: {value}")
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)

    return parsed


def parse_row(
    record: Dict[str, Any],
    row_number: int,
    column_map: Optional[Dict[str, str]] = None,
) -> ParsedPaymentRow:
    """
    Parse a single raw record into a ParsedPaymentRow.

    Args:
        record: Dictionary from CSV row
        row_number: 1-based data row number, used in error reports
        column_map: Result of detect_columns(); detected from the record
            keys when omitted

    Returns:
        ParsedPaymentRow with normalized fields

    Raises:
        MalformedRowError: If amount or date are missing or unparseable
        UnsupportedFormatError: If column_map is omitted and the record
            has no amount/date columns

    Example:
        >>> row = parse_row({
        ...     "Amount": "100.00",
        ...     "Created Formatted": "2024-03-01 10:00:00",
        ...     "Billing Details Email": "j@x.com",
        ... }, row_number=1)
        >>> row.amount_cents, row.populated_email_fields
        (10000, ['billing_email'])
    """
    if column_map is None:
        column_map = detect_columns(record.keys())

    amount_str = _find_value(record, column_map, "amount")
    if amount_str is None:
        raise MalformedRowError(
            f"Row {row_number}: missing required field 'amount'",
            row_number=row_number,
            record=record,
        )

    amount = _parse_amount(amount_str)
    if amount is None:
        raise MalformedRowError(
            f"Row {row_number}: invalid amount '{amount_str}'",
            row_number=row_number,
            record=record,
        )

    date_str = _find_value(record, column_map, "created_at")
    if date_str is None:
        raise MalformedRowError(
            f"Row {row_number}: missing required field 'date'",
            row_number=row_number,
            record=record,
        )

    transaction_at = _parse_timestamp(date_str)
    if transaction_at is None:
        raise MalformedRowError(
            f"Row {row_number}: invalid date '{date_str}'",
            row_number=row_number,
            record=record,
        )

    optional = {
        name: _find_value(record, column_map, name)
        for name in (
            "donor_name", "description", "plan_nickname", "status",
            "subscription_id", "charge_id", "customer_id",
        ) + DONOR_ATTRIBUTE_FIELDS
    }

    return ParsedPaymentRow(
        row_number=row_number,
        amount_cents=amount,
        transaction_at=transaction_at,
        donor_name=optional["donor_name"],
        primary_email=normalize_email(_find_value(record, column_map, "primary_email")),
        billing_email=normalize_email(_find_value(record, column_map, "billing_email")),
        description=optional["description"],
        plan_nickname=optional["plan_nickname"],
        raw_status=optional["status"],
        subscription_id=optional["subscription_id"],
        charge_id=optional["charge_id"],
        customer_id=optional["customer_id"],
        phone=optional["phone"],
        address_line1=optional["address_line1"],
        address_line2=optional["address_line2"],
        city=optional["city"],
        state=optional["state"],
        zip_code=optional["zip_code"],
        country=optional["country"],
    )


def parse_all_rows(
    records: List[Dict[str, Any]],
    column_map: Optional[Dict[str, str]] = None,
) -> Tuple[List[ParsedPaymentRow], List[MalformedRowError]]:
    """
    Parse every record, collecting malformed rows instead of raising.

    Row numbers start at 1 for the first data row.

    Returns:
        Tuple of (parsed_rows, malformed_row_errors)
    """
    rows: List[ParsedPaymentRow] = []
    errors: List[MalformedRowError] = []

    if not records:
        return rows, errors

    if column_map is None:
        column_map = detect_columns(records[0].keys())

    for row_number, record in enumerate(records, start=1):
        try:
            rows.append(parse_row(record, row_number, column_map))
        except MalformedRowError as e:
            logger.warning(str(e))
            errors.append(e)

    logger.info(f"Parsed {len(rows)} rows, {len(errors)} malformed")

    return rows, errors
