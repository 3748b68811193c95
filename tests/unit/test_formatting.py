"""Tests for display formatting helpers."""

from datetime import date

import pytest

from clip_storefront.utils.formatting import (
    checkout_item_description,
    checkout_item_name,
    format_duration,
    format_price,
    normalize_search_query,
)


class TestFormatPrice:
    @pytest.mark.parametrize(
        "cents,expected",
        [(500, "$5.00"), (0, "$0.00"), (1999, "$19.99"), (5, "$0.05")],
    )
    def test_format_price(self, cents, expected):
        assert format_price(cents) == expected


class TestFormatDuration:
    @pytest.mark.parametrize(
        "seconds,expected",
        [(312, "5:12"), (59, "0:59"), (600, "10:00"), (None, "--:--"), (0, "--:--")],
    )
    def test_format_duration(self, seconds, expected):
        assert format_duration(seconds) == expected


class TestNormalizeSearchQuery:
    """Test search input normalization."""

    def test_lowercases_and_strips_punctuation(self):
        assert normalize_search_query("  O'Brien! ") == "obrien"

    def test_keeps_inner_whitespace_and_digits(self):
        assert normalize_search_query("Jane Doe 2") == "jane doe 2"

    def test_empty_inputs(self):
        assert normalize_search_query(None) == ""
        assert normalize_search_query("") == ""
        assert normalize_search_query("%_*") == ""

    def test_sql_wildcards_removed(self):
        """Test that LIKE wildcards in user input cannot widen a search."""
        assert normalize_search_query("%jane_") == "jane"


class TestCheckoutLineItem:
    def test_item_name(self):
        assert checkout_item_name("Jane Doe") == "Comedy Set - Jane Doe"

    def test_item_description(self):
        assert (
            checkout_item_description("The Laugh Cellar", date(2025, 1, 10))
            == "The Laugh Cellar - 2025-01-10"
        )
