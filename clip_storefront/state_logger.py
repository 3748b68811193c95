"""State change logging for purchases and downloads.

Every purchase status transition, credential issue and redemption goes
through here so the audit trail in the logs has one consistent shape.
"""

from datetime import datetime
from typing import Any, Optional

from clip_storefront.logging_config import get_logger
from clip_storefront.utils.token_generator import token_preview

logger = get_logger(__name__)


def log_purchase_status_change(
    purchase_id: Optional[str],
    old_status: Any,
    new_status: Any,
    reason: Optional[str] = None,
    **extra_context: Any,
) -> None:
    """Log a purchase status transition.

    Args:
        purchase_id: Purchase row ID (None when only the session is known)
        old_status: Previous status value
        new_status: New status value
        reason: What caused the transition (webhook event type, reconstruction, ...)
        **extra_context: Additional context (session_id, clip_id, ...)
    """
    logger.info(
        "purchase_status_changed",
        purchase_id=purchase_id,
        old_status=str(old_status),
        new_status=str(new_status),
        reason=reason,
        **extra_context,
    )


def log_credential_issued(
    token: str,
    expires_at: datetime,
    max_downloads: int,
    **extra_context: Any,
) -> None:
    """Log a freshly minted download credential (token preview only)."""
    logger.info(
        "download_credential_issued",
        token=token_preview(token),
        expires_at=expires_at.isoformat(),
        max_downloads=max_downloads,
        **extra_context,
    )


def log_download_redeemed(
    token: str,
    purchase_id: str,
    variant: str,
    download_count: int,
    max_downloads: int,
    **extra_context: Any,
) -> None:
    """Log one successful redemption."""
    logger.info(
        "download_redeemed",
        token=token_preview(token),
        purchase_id=purchase_id,
        variant=variant,
        download_count=download_count,
        downloads_remaining=max(max_downloads - download_count, 0),
        **extra_context,
    )


def log_download_rejected(token: str, reason: str, **extra_context: Any) -> None:
    """Log a redemption refused by expiry, limit or missing file checks."""
    logger.warning(
        "download_rejected",
        token=token_preview(token),
        reason=reason,
        **extra_context,
    )
