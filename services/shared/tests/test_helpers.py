"""Tests for text and email helpers."""

import pytest

from services.shared.helpers import (
    clean_text,
    collapse_name,
    is_valid_email,
    normalize_email,
    synthesize_email,
)


class TestCleanText:

    def test_collapses_whitespace(self):
        assert clean_text("  Monthly   Sponsorship Donation ") == "Monthly Sponsorship Donation"

    @pytest.mark.parametrize("value", [None, "", "   ", "\t\n"])
    def test_blank_is_none(self, value):
        assert clean_text(value) is None

    def test_composes_unicode(self):
        assert clean_text("Jose\u0301") == "Jos\u00e9"

    def test_non_string_values(self):
        assert clean_text(12) == "12"


class TestCollapseName:

    def test_removes_spaces(self):
        assert collapse_name("Jane  Doe") == "JaneDoe"

    def test_blank_defaults_to_anonymous(self):
        assert collapse_name(None) == "Anonymous"
        assert collapse_name("  ") == "Anonymous"

    def test_custom_default(self):
        assert collapse_name("", default="Unknown") == "Unknown"


class TestEmail:

    def test_normalize_blank(self):
        assert normalize_email("  ") is None

    def test_normalize_keeps_case(self):
        assert normalize_email(" J@X.com ") == "J@X.com"

    @pytest.mark.parametrize("email", ["j@x.com", "first.last+tag@example.org", "JaneDoe@mailinator.com"])
    def test_valid(self, email):
        assert is_valid_email(email)

    @pytest.mark.parametrize("email", [None, "", "no-at-sign", "a@", "Smith,John@mailinator.com", "a b@x.com"])
    def test_invalid(self, email):
        assert not is_valid_email(email)

    def test_synthesize_from_name(self):
        assert synthesize_email("Jane Doe", "mailinator.com") == "JaneDoe@mailinator.com"

    def test_synthesize_anonymous(self):
        assert synthesize_email("", "example.org") == "Anonymous@example.org"

    def test_synthesize_strips_at_from_domain(self):
        assert synthesize_email("Jane", "@example.org") == "Jane@example.org"
