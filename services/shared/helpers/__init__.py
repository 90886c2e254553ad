"""
Helper utilities for data normalization and validation.

This module provides utilities for normalizing donor and child names and
for validating and synthesizing donor email addresses.
"""

from .email import is_valid_email, normalize_email, synthesize_email
from .name import clean_text, collapse_name

__all__ = [
    "is_valid_email",
    "normalize_email",
    "synthesize_email",
    "clean_text",
    "collapse_name",
]
