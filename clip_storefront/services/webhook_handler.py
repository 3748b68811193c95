"""Webhook Handler - the only path that moves a purchase out of pending.

Responsibilities:
- Authenticate the delivery (signature over the raw body, before parsing)
- checkout.session.completed: complete the purchase and mint its download credential
- payment_intent.payment_failed: fail the purchase
- Acknowledge everything else

Store failures are logged, never surfaced: the gateway retries any non-2xx
response, and a transient local write error is not a reason to make it retry.
Redelivery is safe because each transition only matches rows still pending.
"""

import enum
from datetime import timedelta
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from clip_storefront.config import Config, get_config
from clip_storefront.database import Database
from clip_storefront.errors import BadRequest
from clip_storefront.logging_config import get_logger
from clip_storefront.models.events import (
    CHECKOUT_SESSION_COMPLETED,
    PAYMENT_INTENT_FAILED,
    CheckoutSessionObject,
    WebhookEvent,
)
from clip_storefront.models.purchase import PurchaseStatus
from clip_storefront.repositories.clip_repository import ClipRepository
from clip_storefront.repositories.purchase_store import PurchaseStore
from clip_storefront.services.payment_gateway import PaymentGateway
from clip_storefront.services.time_controller import TimeController, get_time_controller
from clip_storefront.state_logger import log_credential_issued, log_purchase_status_change
from clip_storefront.utils.token_generator import generate_download_token

logger = get_logger(__name__)


class WebhookOutcome(str, enum.Enum):
    """What processing a delivery did. Every outcome is acknowledged."""

    COMPLETED = "completed"
    RECONSTRUCTED = "reconstructed"
    ALREADY_PROCESSED = "already_processed"
    FAILED = "failed"
    NO_MATCHING_PURCHASE = "no_matching_purchase"
    MISSING_CLIP_ID = "missing_clip_id"
    STORE_ERROR = "store_error"
    IGNORED = "ignored"


class WebhookHandler:
    """Processes authenticated payment gateway events."""

    def __init__(
        self,
        database: Database,
        gateway: PaymentGateway,
        config: Optional[Config] = None,
        time_controller: Optional[TimeController] = None,
    ):
        self._database = database
        self._gateway = gateway
        self._config = config if config is not None else get_config()
        self._clock = time_controller if time_controller is not None else get_time_controller()

    def handle(self, payload: bytes, signature: Optional[str]) -> WebhookOutcome:
        """Verify and process one webhook delivery.

        Args:
            payload: Raw request body, exactly as received
            signature: Stripe-Signature header value

        Returns:
            WebhookOutcome describing what happened

        Raises:
            InvalidSignature: If the delivery is not authentic
            BadRequest: If the verified body is not a valid event
        """
        event = self._gateway.construct_event(payload, signature)
        logger.info("webhook_event_received", event_id=event.id, event_type=event.type)

        if event.type == CHECKOUT_SESSION_COMPLETED:
            outcome = self._handle_checkout_completed(event)
        elif event.type == PAYMENT_INTENT_FAILED:
            outcome = self._handle_payment_failed(event)
        else:
            outcome = WebhookOutcome.IGNORED

        logger.info(
            "webhook_event_processed",
            event_id=event.id,
            event_type=event.type,
            outcome=outcome.value,
        )
        return outcome

    def _handle_checkout_completed(self, event: WebhookEvent) -> WebhookOutcome:
        try:
            checkout_session = event.checkout_session()
        except ValidationError as e:
            raise BadRequest("Malformed checkout session") from e

        clip_id = checkout_session.clip_id
        if not clip_id:
            logger.error(
                "checkout_session_missing_clip_id",
                event_id=event.id,
                session_id=checkout_session.id,
            )
            return WebhookOutcome.MISSING_CLIP_ID

        completed_at = self._clock.now()
        expires_at = completed_at + timedelta(hours=self._config.downloads.link_ttl_hours)
        download_token = generate_download_token()

        try:
            with self._database.session() as session:
                store = PurchaseStore(session)
                updated = store.complete_pending(
                    checkout_session_id=checkout_session.id,
                    buyer_email=checkout_session.buyer_email,
                    buyer_name=checkout_session.buyer_name,
                    payment_intent_id=checkout_session.payment_intent,
                    download_token=download_token,
                    download_expires_at=expires_at,
                    completed_at=completed_at,
                )
                if updated:
                    outcome = WebhookOutcome.COMPLETED
                else:
                    outcome = self._resolve_unmatched_completion(
                        session, store, checkout_session, download_token, expires_at, completed_at
                    )
                purchase = store.find_by_session(checkout_session.id)
                purchase_id = purchase.id if purchase is not None else None
        except IntegrityError as e:
            # a concurrent delivery of the same event inserted first
            logger.warning(
                "purchase_completion_conflict",
                session_id=checkout_session.id,
                error=str(e),
            )
            return WebhookOutcome.ALREADY_PROCESSED
        except SQLAlchemyError as e:
            logger.error(
                "purchase_completion_failed",
                session_id=checkout_session.id,
                clip_id=clip_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return WebhookOutcome.STORE_ERROR

        if outcome in (WebhookOutcome.COMPLETED, WebhookOutcome.RECONSTRUCTED):
            log_purchase_status_change(
                purchase_id=purchase_id,
                old_status=PurchaseStatus.PENDING.value if outcome == WebhookOutcome.COMPLETED else None,
                new_status=PurchaseStatus.COMPLETED.value,
                reason=event.type,
                session_id=checkout_session.id,
                clip_id=clip_id,
            )
            log_credential_issued(
                download_token,
                expires_at=expires_at,
                max_downloads=self._config.downloads.max_downloads,
                purchase_id=purchase_id,
            )
        return outcome

    def _resolve_unmatched_completion(
        self,
        session,
        store: PurchaseStore,
        checkout_session: CheckoutSessionObject,
        download_token: str,
        expires_at,
        completed_at,
    ) -> WebhookOutcome:
        """Decide what a completion that matched no pending row means.

        Either the purchase already left pending (redelivery), or the pending
        row was never written at checkout time and is rebuilt from the session.
        """
        existing = store.find_by_session(checkout_session.id)
        if existing is not None:
            if existing.status == PurchaseStatus.FAILED:
                logger.error(
                    "completed_payment_for_failed_purchase",
                    purchase_id=existing.id,
                    session_id=checkout_session.id,
                )
            else:
                logger.info(
                    "purchase_already_processed",
                    purchase_id=existing.id,
                    status=existing.status.value,
                )
            return WebhookOutcome.ALREADY_PROCESSED

        clip = ClipRepository(session).find_with_show(checkout_session.clip_id)
        if clip is None:
            logger.error(
                "purchase_not_found_for_session",
                session_id=checkout_session.id,
                clip_id=checkout_session.clip_id,
            )
            return WebhookOutcome.NO_MATCHING_PURCHASE

        logger.warning(
            "purchase_reconstructed_from_session",
            session_id=checkout_session.id,
            clip_id=clip.id,
        )
        store.add_completed(
            clip_id=clip.id,
            checkout_session_id=checkout_session.id,
            amount_cents=(
                checkout_session.amount_total
                if checkout_session.amount_total is not None
                else clip.resolve_price(self._config.default_price_cents)
            ),
            currency=(checkout_session.currency or self._config.store.currency).lower(),
            max_downloads=self._config.downloads.max_downloads,
            buyer_email=checkout_session.buyer_email,
            buyer_name=checkout_session.buyer_name,
            payment_intent_id=checkout_session.payment_intent,
            download_token=download_token,
            download_expires_at=expires_at,
            completed_at=completed_at,
        )
        return WebhookOutcome.RECONSTRUCTED

    def _handle_payment_failed(self, event: WebhookEvent) -> WebhookOutcome:
        try:
            payment_intent = event.payment_intent()
        except ValidationError as e:
            raise BadRequest("Malformed payment intent") from e

        try:
            with self._database.session() as session:
                store = PurchaseStore(session)
                updated = store.fail_pending_by_payment_intent(payment_intent.id)
                purchase = store.find_by_payment_intent(payment_intent.id) if updated else None
                purchase_id = purchase.id if purchase is not None else None
        except SQLAlchemyError as e:
            logger.error(
                "purchase_failure_update_failed",
                payment_intent_id=payment_intent.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return WebhookOutcome.STORE_ERROR

        if not updated:
            logger.info("no_pending_purchase_for_payment_intent", payment_intent_id=payment_intent.id)
            return WebhookOutcome.NO_MATCHING_PURCHASE

        log_purchase_status_change(
            purchase_id=purchase_id,
            old_status=PurchaseStatus.PENDING.value,
            new_status=PurchaseStatus.FAILED.value,
            reason=event.type,
            payment_intent_id=payment_intent.id,
        )
        return WebhookOutcome.FAILED
