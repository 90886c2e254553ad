"""
Row-level error taxonomy for payment imports.

Every exception here is local to one CSV row: the orchestrator records it
with the row number and moves on to the next row. Ambiguous statuses and
duplicate subscriptions are not errors; they become needs_attention
donations instead.
"""

from typing import Any, Dict, Optional


class ImportRowError(Exception):
    """A single row could not be imported."""

    def __init__(
        self,
        reason: str,
        row_number: Optional[int] = None,
        record: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(reason)
        self.reason = reason
        self.row_number = row_number
        self.record = record

    def __str__(self) -> str:
        return self.reason


class MalformedRowError(ImportRowError):
    """Mandatory field (amount, date) missing or unparseable."""
    pass


class IdentityResolutionError(ImportRowError):
    """No valid donor could be resolved or persisted for the row."""
    pass


class DonationValidationError(ImportRowError):
    """Resolved donation payload failed validation before write."""
    pass
