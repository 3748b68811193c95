"""Catalog Service - read-only queries behind the search, clip and success pages.

Runs on the read-only engine. Results are converted to response models while
the session is open so nothing lazy escapes it.
"""

from typing import Optional

from clip_storefront.config import Config, get_config
from clip_storefront.database import Database
from clip_storefront.errors import NotFound
from clip_storefront.logging_config import get_logger
from clip_storefront.models.api_response import ClipDetail, ClipSummary, PurchaseStatusResponse
from clip_storefront.models.base import ensure_utc
from clip_storefront.models.catalog import Clip
from clip_storefront.models.purchase import PurchaseStatus
from clip_storefront.repositories.clip_repository import ClipRepository
from clip_storefront.repositories.purchase_store import PurchaseStore
from clip_storefront.utils.formatting import format_duration, format_price, normalize_search_query

logger = get_logger(__name__)


class CatalogService:
    def __init__(self, database: Database, config: Optional[Config] = None):
        self._database = database
        self._config = config if config is not None else get_config()

    def _summary_fields(self, clip: Clip) -> dict:
        price_cents = clip.resolve_price(self._config.default_price_cents)
        return {
            "id": clip.id,
            "performerName": clip.performer_name,
            "setNumber": clip.set_number,
            "durationSeconds": clip.duration_seconds,
            "duration": format_duration(clip.duration_seconds),
            "priceCents": price_cents,
            "price": format_price(price_cents),
            "isAvailable": clip.is_available,
            "promoAllowed": clip.promo_allowed,
            "previewPath": clip.preview_path,
            "showDate": clip.show.show_date.isoformat(),
            "showName": clip.show.show_name,
            "venueName": clip.show.venue.name,
            "venueSlug": clip.show.venue.slug,
        }

    def search(self, query: Optional[str]) -> list[ClipSummary]:
        """Clips whose performer name contains the normalized query."""
        normalized = normalize_search_query(query)
        if not normalized:
            return []

        with self._database.readonly_session() as session:
            clips = ClipRepository(session).search(normalized)
            results = [ClipSummary(**self._summary_fields(clip)) for clip in clips]

        logger.debug("clip_search", query=normalized, results=len(results))
        return results

    def get_clip(self, clip_id: str) -> ClipDetail:
        """Clip page payload.

        Raises:
            NotFound: If the clip does not exist
        """
        with self._database.readonly_session() as session:
            clip = ClipRepository(session).find_with_show(clip_id)
            if clip is None:
                raise NotFound("Clip not found")
            return ClipDetail(
                **self._summary_fields(clip),
                venueCity=clip.show.venue.city,
                venueState=clip.show.venue.state,
                availableVariants=[variant.value for variant in clip.available_variants()],
            )

    def get_purchase_status(self, checkout_session_id: str) -> PurchaseStatusResponse:
        """Success page lookup by checkout session.

        The download token is only revealed once the purchase is completed.

        Raises:
            NotFound: If no purchase exists for the session yet
        """
        with self._database.readonly_session() as session:
            purchase = PurchaseStore(session).find_by_session(checkout_session_id)
            if purchase is None:
                raise NotFound("Purchase not found")

            completed = purchase.status == PurchaseStatus.COMPLETED and bool(purchase.download_token)
            clip = purchase.clip
            return PurchaseStatusResponse(
                status=purchase.status.value,
                performerName=clip.performer_name if clip is not None else None,
                downloadToken=purchase.download_token if completed else None,
                expiresAt=(
                    ensure_utc(purchase.download_expires_at)
                    if completed and purchase.download_expires_at
                    else None
                ),
                maxDownloads=purchase.max_downloads,
                downloadsRemaining=purchase.downloads_remaining,
                availableVariants=(
                    [variant.value for variant in clip.available_variants()]
                    if completed and clip is not None
                    else []
                ),
            )
