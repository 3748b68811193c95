"""Storefront error taxonomy.

Each error carries the HTTP status it maps to and the message shown to the
caller. Route handlers let these propagate; the application's exception
handler renders them as ``{"error": message}``.
"""

from typing import Optional


class StorefrontError(Exception):
    """Base exception for all user-visible storefront failures."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequest(StorefrontError):
    """Malformed caller input."""

    status_code = 400
    default_message = "Bad request"


class NotFound(StorefrontError):
    """Referenced entity does not exist."""

    status_code = 404
    default_message = "Not found"


class Unavailable(StorefrontError):
    """Entity exists but is not purchasable."""

    status_code = 400
    default_message = "Clip not available for purchase"


class InvalidSignature(StorefrontError):
    """Webhook authenticity check failed."""

    status_code = 400
    default_message = "Invalid signature"


class InvalidLink(StorefrontError):
    """No purchase matches the download token."""

    status_code = 404
    default_message = "Invalid download link"


class Expired(StorefrontError):
    """Download token is past its expiry."""

    status_code = 410
    default_message = "Download link has expired"


class LimitReached(StorefrontError):
    """Purchase has used all of its downloads."""

    status_code = 403
    default_message = "Maximum downloads reached"


class FileUnavailable(StorefrontError):
    """Requested file variant does not exist for the clip."""

    status_code = 404
    default_message = "File not available"


class GatewayError(StorefrontError):
    """Payment gateway call failed."""

    status_code = 500
    default_message = "Failed to create checkout session"


class InternalError(StorefrontError):
    """Unexpected failure, including data store errors."""

    status_code = 500
    default_message = "Internal server error"
