"""
Email validation and synthesis for donor identities.

Donors are keyed by email. Anonymous donors without any usable address get a
synthetic one built from their name on a placeholder domain.
"""

import re
from typing import Optional

from .name import clean_text, collapse_name

# Same shape as the HTML5 / URI mailto address grammar
EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)


def normalize_email(email: Optional[str]) -> Optional[str]:
    """
    Trim an email field; blank values become None.

    Case is preserved for storage, lookups compare lowercase.
    """
    cleaned = clean_text(email)
    if cleaned is None:
        return None
    return cleaned.replace(" ", "")


def is_valid_email(email: Optional[str]) -> bool:
    """
    Check an address against the mailto grammar.

    Examples:
        >>> is_valid_email("j@x.com")
        True
        >>> is_valid_email("Smith,John@mailinator.com")
        False
    """
    if not email:
        return False
    return bool(EMAIL_PATTERN.match(email))


def synthesize_email(name: Optional[str], domain: str) -> str:
    """
    Build a placeholder address from a donor name.

    Examples:
        >>> synthesize_email("Jane Doe", "mailinator.com")
        'JaneDoe@mailinator.com'
        >>> synthesize_email("", "mailinator.com")
        'Anonymous@mailinator.com'
    """
    return f"{collapse_name(name)}@{domain.strip().lstrip('@')}"
