"""Display helpers for prices, durations, dates and search input."""

import re
from datetime import date
from typing import Optional

_SEARCH_STRIP = re.compile(r"[^a-z0-9\s]")


def format_price(cents: int) -> str:
    """Format minor currency units as dollars.

    Example:
        format_price(500) -> "$5.00"
    """
    return f"${cents / 100:.2f}"


def format_duration(seconds: Optional[int]) -> str:
    """Format a duration as m:ss, or --:-- when unknown."""
    if not seconds:
        return "--:--"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}:{secs:02d}"


def format_show_date(value: date) -> str:
    """Short display date used in line item descriptions, e.g. 2025-01-10."""
    return value.isoformat()


def normalize_search_query(query: Optional[str]) -> str:
    """Lowercase and drop everything except letters, digits and whitespace.

    Example:
        normalize_search_query("  O'Brien! ") -> "obrien"
    """
    if not query:
        return ""
    return _SEARCH_STRIP.sub("", query.lower()).strip()


def checkout_item_name(performer_name: str) -> str:
    return f"Comedy Set - {performer_name}"


def checkout_item_description(venue_name: str, show_date: date) -> str:
    return f"{venue_name} - {format_show_date(show_date)}"
