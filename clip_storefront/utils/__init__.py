"""Utility functions and helpers for the storefront."""

from clip_storefront.utils.formatting import (
    checkout_item_description,
    checkout_item_name,
    format_duration,
    format_price,
    format_show_date,
    normalize_search_query,
)
from clip_storefront.utils.token_generator import (
    generate_download_token,
    token_preview,
    validate_download_token,
)

__all__ = [
    # Download tokens
    "generate_download_token",
    "validate_download_token",
    "token_preview",
    # Display formatting
    "format_price",
    "format_duration",
    "format_show_date",
    "normalize_search_query",
    "checkout_item_name",
    "checkout_item_description",
]
