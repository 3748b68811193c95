"""Checkout Service - turns a clip ID into a hosted checkout URL.

Validates the clip, resolves its price, creates the gateway session and
records a pending purchase for it.
"""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from clip_storefront.config import Config, get_config
from clip_storefront.database import Database
from clip_storefront.errors import BadRequest, InternalError, NotFound, Unavailable
from clip_storefront.logging_config import get_logger
from clip_storefront.repositories.clip_repository import ClipNotFoundError, ClipRepository
from clip_storefront.repositories.purchase_store import PurchaseStore
from clip_storefront.services.payment_gateway import SESSION_ID_PLACEHOLDER, PaymentGateway
from clip_storefront.state_logger import log_purchase_status_change
from clip_storefront.utils.formatting import checkout_item_description, checkout_item_name

logger = get_logger(__name__)


class CheckoutService:
    """Starts purchases.

    Failure policy: once the gateway session exists the buyer gets the
    checkout URL even if recording the pending purchase fails. The webhook
    handler rebuilds the purchase from the session in that case.
    """

    def __init__(
        self,
        database: Database,
        gateway: PaymentGateway,
        config: Optional[Config] = None,
    ):
        self._database = database
        self._gateway = gateway
        self._config = config if config is not None else get_config()

    def success_url(self) -> str:
        return f"{self._config.public_base_url}/success?session_id={SESSION_ID_PLACEHOLDER}"

    def cancel_url(self, clip_id: str) -> str:
        return f"{self._config.public_base_url}/clip/{clip_id}"

    def start_checkout(self, clip_id: Optional[str]) -> str:
        """Create a checkout session for a clip and record the pending purchase.

        Args:
            clip_id: Clip to purchase

        Returns:
            Hosted checkout URL

        Raises:
            BadRequest: If clip_id is missing
            NotFound: If the clip does not exist
            Unavailable: If the clip is not for sale
            GatewayError: If the gateway call fails
            InternalError: If the catalog cannot be read
        """
        if not clip_id or not clip_id.strip():
            raise BadRequest("Clip ID required")
        clip_id = clip_id.strip()

        try:
            with self._database.session() as session:
                clip = ClipRepository(session).get_with_show(clip_id)
                if not clip.is_available:
                    logger.info("checkout_rejected_unavailable", clip_id=clip_id)
                    raise Unavailable()

                amount_cents = clip.resolve_price(self._config.default_price_cents)
                item_name = checkout_item_name(clip.performer_name)
                item_description = checkout_item_description(
                    clip.show.venue.name, clip.show.show_date
                )
        except ClipNotFoundError as e:
            logger.info("checkout_rejected_not_found", clip_id=clip_id)
            raise NotFound("Clip not found") from e
        except SQLAlchemyError as e:
            logger.error("checkout_clip_lookup_failed", clip_id=clip_id, error=str(e), exc_info=True)
            raise InternalError() from e

        currency = self._config.store.currency
        checkout_session = self._gateway.create_checkout_session(
            amount_cents=amount_cents,
            currency=currency,
            item_name=item_name,
            item_description=item_description,
            success_url=self.success_url(),
            cancel_url=self.cancel_url(clip_id),
            metadata={"clip_id": clip_id},
        )

        self._record_pending(
            clip_id,
            checkout_session.id,
            checkout_session.payment_intent,
            amount_cents,
            currency,
        )
        return checkout_session.url

    def _record_pending(
        self,
        clip_id: str,
        checkout_session_id: str,
        payment_intent_id: Optional[str],
        amount_cents: int,
        currency: str,
    ) -> None:
        try:
            with self._database.session() as session:
                purchase = PurchaseStore(session).add_pending(
                    clip_id=clip_id,
                    checkout_session_id=checkout_session_id,
                    amount_cents=amount_cents,
                    currency=currency,
                    max_downloads=self._config.downloads.max_downloads,
                    payment_intent_id=payment_intent_id,
                )
                purchase_id = purchase.id
        except SQLAlchemyError as e:
            logger.error(
                "pending_purchase_insert_failed",
                clip_id=clip_id,
                session_id=checkout_session_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        log_purchase_status_change(
            purchase_id=purchase_id,
            old_status=None,
            new_status="pending",
            reason="checkout_started",
            clip_id=clip_id,
            session_id=checkout_session_id,
            amount_cents=amount_cents,
        )
