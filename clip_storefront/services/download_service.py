"""Download Service - exchanges a download token for one file of the purchased clip.

Checks, in order: the token matches a purchase, the link has not expired,
downloads remain, the requested variant exists. The download is then counted
with a conditional increment (the count check is repeated inside the UPDATE)
and an audit row is appended.

Serving the bytes themselves (signed URL or streaming) is not done here;
the caller receives the stored file reference.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from clip_storefront.config import Config, get_config
from clip_storefront.database import Database
from clip_storefront.errors import Expired, FileUnavailable, InternalError, InvalidLink, LimitReached
from clip_storefront.logging_config import get_logger
from clip_storefront.models.base import ensure_utc
from clip_storefront.models.catalog import FileVariant
from clip_storefront.models.purchase import PurchaseStatus
from clip_storefront.repositories.download_log_store import DownloadLogStore
from clip_storefront.repositories.purchase_store import PurchaseStore
from clip_storefront.services.time_controller import TimeController, get_time_controller
from clip_storefront.state_logger import log_download_redeemed, log_download_rejected
from clip_storefront.utils.token_generator import validate_download_token

logger = get_logger(__name__)

UNKNOWN = "unknown"


class RedemptionResult(BaseModel):
    """One authorized download."""

    purchase_id: str
    clip_id: Optional[str]
    variant: FileVariant
    file_path: str
    download_count: int
    downloads_remaining: int
    expires_at: datetime = Field(..., description="Credential expiry, UTC")


class DownloadService:
    """Redeems download tokens."""

    def __init__(
        self,
        database: Database,
        config: Optional[Config] = None,
        time_controller: Optional[TimeController] = None,
    ):
        self._database = database
        self._config = config if config is not None else get_config()
        self._clock = time_controller if time_controller is not None else get_time_controller()

    def resolve_variant(self, requested: Optional[str]) -> FileVariant:
        """Map the ``type`` query parameter to a variant, defaulting when absent or unknown."""
        return FileVariant.parse(requested, self._config.downloads.default_variant)

    def redeem(
        self,
        token: str,
        requested_variant: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> RedemptionResult:
        """Authorize and account for one download.

        Args:
            token: Download token from the link
            requested_variant: original | social | social_subtitled | srt
            ip_address: Caller IP, "unknown" if absent
            user_agent: Caller user agent, "unknown" if absent

        Returns:
            RedemptionResult with the file reference and remaining downloads

        Raises:
            InvalidLink: No completed purchase has this token
            Expired: The link is at or past its expiry
            LimitReached: All downloads have been used
            FileUnavailable: The clip has no file for the requested variant
            InternalError: The store could not be read or the count could not be written
        """
        variant = self.resolve_variant(requested_variant)
        if not validate_download_token(token):
            log_download_rejected(token, reason="malformed_token")
            raise InvalidLink()

        try:
            with self._database.session() as session:
                store = PurchaseStore(session)
                purchase = store.find_by_token(token)
                if purchase is None or purchase.status != PurchaseStatus.COMPLETED:
                    log_download_rejected(token, reason="unknown_token")
                    raise InvalidLink()

                now = self._clock.now()
                if purchase.is_expired(now):
                    log_download_rejected(token, reason="expired", purchase_id=purchase.id)
                    raise Expired()

                if purchase.download_count >= purchase.max_downloads:
                    log_download_rejected(token, reason="limit_reached", purchase_id=purchase.id)
                    raise LimitReached()

                clip = purchase.clip
                if clip is None:
                    log_download_rejected(token, reason="clip_missing", purchase_id=purchase.id)
                    raise FileUnavailable("Clip not found")

                file_path = clip.path_for(variant)
                if not file_path:
                    log_download_rejected(
                        token,
                        reason="file_unavailable",
                        purchase_id=purchase.id,
                        variant=variant.value,
                    )
                    raise FileUnavailable()

                if not store.consume_download(purchase.id, now):
                    # another request took the last download between the read and the update
                    purchase = store.get(purchase.id)
                    if purchase.is_expired(self._clock.now()):
                        raise Expired()
                    log_download_rejected(token, reason="limit_reached", purchase_id=purchase.id)
                    raise LimitReached()

                purchase = store.get(purchase.id)
                result = RedemptionResult(
                    purchase_id=purchase.id,
                    clip_id=clip.id,
                    variant=variant,
                    file_path=file_path,
                    download_count=purchase.download_count,
                    downloads_remaining=purchase.downloads_remaining,
                    expires_at=ensure_utc(purchase.download_expires_at),
                )
        except SQLAlchemyError as e:
            logger.error(
                "download_redemption_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise InternalError() from e

        self._append_log(result, ip_address, user_agent)
        log_download_redeemed(
            token,
            purchase_id=result.purchase_id,
            variant=variant.value,
            download_count=result.download_count,
            max_downloads=result.download_count + result.downloads_remaining,
        )
        return result

    def _append_log(
        self,
        result: RedemptionResult,
        ip_address: Optional[str],
        user_agent: Optional[str],
    ) -> None:
        """Write the audit row. Failures are logged; the download already counted."""
        try:
            with self._database.session() as session:
                DownloadLogStore(session).append(
                    purchase_id=result.purchase_id,
                    clip_id=result.clip_id,
                    ip_address=ip_address or UNKNOWN,
                    user_agent=user_agent or UNKNOWN,
                    file_type=result.variant.value,
                )
        except SQLAlchemyError as e:
            logger.error(
                "download_log_append_failed",
                purchase_id=result.purchase_id,
                error=str(e),
                error_type=type(e).__name__,
            )
