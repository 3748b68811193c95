"""Download credential generation utilities.

A download token is 32 bytes from the operating system's CSPRNG, hex encoded
(64 characters, 256 bits of entropy). Tokens are opaque: nothing about the
purchase can be derived from one.
"""

import re
import secrets
from typing import Optional

TOKEN_BYTES = 32
TOKEN_PREVIEW_LENGTH = 12

_TOKEN_PATTERN = re.compile(r"^[a-f0-9]{64,}$")


def generate_download_token(nbytes: int = TOKEN_BYTES) -> str:
    """Generate a new download token.

    Args:
        nbytes: Random bytes to draw (minimum 32)

    Returns:
        Lowercase hex string of length 2 * nbytes

    Raises:
        ValueError: If fewer than 32 bytes are requested
    """
    if nbytes < TOKEN_BYTES:
        raise ValueError(f"Download tokens need at least {TOKEN_BYTES} random bytes")
    return secrets.token_hex(nbytes)


def validate_download_token(token: Optional[str]) -> bool:
    """Check that a string has the shape of a download token.

    Used to reject garbage before touching the database; a well-formed token
    may still match no purchase.
    """
    if not token or not isinstance(token, str):
        return False
    return bool(_TOKEN_PATTERN.match(token))


def token_preview(token: Optional[str]) -> str:
    """Shortened token for log lines. Full tokens are never logged."""
    if not token:
        return ""
    if len(token) <= TOKEN_PREVIEW_LENGTH:
        return token
    return f"{token[:TOKEN_PREVIEW_LENGTH]}..."
