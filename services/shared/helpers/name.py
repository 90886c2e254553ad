"""
Name and free-text normalization utilities.

Processor exports pad fields with stray whitespace, non-breaking spaces and
decomposed unicode; these helpers bring them to a canonical form before any
matching happens.
"""

import re
import unicodedata
from typing import Optional


def clean_text(value: Optional[str]) -> Optional[str]:
    """
    Trim a raw field and collapse internal whitespace.

    Normalization steps:
    1. Normalize unicode to NFC form (canonical composition)
    2. Collapse runs of whitespace (including non-breaking spaces) into one space
    3. Strip leading/trailing whitespace
    4. Map blank results to None

    Args:
        value: Raw field value

    Returns:
        Cleaned string, or None when nothing is left

    Examples:
        >>> clean_text("  Monthly   Sponsorship\\u00a0Donation ")
        'Monthly Sponsorship Donation'
        >>> clean_text("   ") is None
        True
    """
    if value is None:
        return None

    if not isinstance(value, str):
        value = str(value)

    result = unicodedata.normalize("NFC", value)
    result = re.sub(r"\s+", " ", result).strip()

    return result or None


def collapse_name(name: Optional[str], default: str = "Anonymous") -> str:
    """
    Remove all whitespace from a name, falling back to a default.

    Used as the local part of synthetic donor emails.

    Examples:
        >>> collapse_name("Jane Doe")
        'JaneDoe'
        >>> collapse_name("   ")
        'Anonymous'
    """
    cleaned = clean_text(name)
    if not cleaned:
        cleaned = default
    return re.sub(r"\s+", "", cleaned)
