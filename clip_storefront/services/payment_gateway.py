"""Payment gateway - hosted checkout sessions and webhook authentication via Stripe.

One instance is built at startup from configuration and handed to the
services that need it. The API key travels with each request instead of
being set on the ``stripe`` module, so nothing here is process-global.
"""

from typing import Optional

import stripe
from pydantic import BaseModel, Field, ValidationError

from clip_storefront.config import Config
from clip_storefront.errors import BadRequest, GatewayError, InvalidSignature
from clip_storefront.logging_config import get_logger
from clip_storefront.models.events import WebhookEvent

logger = get_logger(__name__)

SESSION_ID_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"
DEFAULT_SIGNATURE_TOLERANCE = 300


class CheckoutSession(BaseModel):
    """What the storefront keeps from a created checkout session."""

    id: str = Field(..., description="Checkout session ID")
    url: str = Field(..., description="Hosted checkout page")
    payment_intent: Optional[str] = Field(None, description="Payment intent, when created eagerly")


class PaymentGateway:
    """Thin wrapper over the Stripe API used by checkout and webhook handling."""

    def __init__(
        self,
        secret_key: str,
        webhook_secret: str,
        signature_tolerance: int = DEFAULT_SIGNATURE_TOLERANCE,
    ):
        if not secret_key or not webhook_secret:
            raise ValueError("secret_key and webhook_secret are required")
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret
        self._signature_tolerance = signature_tolerance

    @classmethod
    def from_config(cls, config: Config) -> "PaymentGateway":
        """Build the gateway, failing fast if secrets are missing.

        Raises:
            ConfigurationError: If STRIPE_SECRET_KEY or STRIPE_WEBHOOK_SECRET is unset
        """
        secret_key, webhook_secret = config.require_payment_secrets()
        return cls(secret_key, webhook_secret)

    def create_checkout_session(
        self,
        amount_cents: int,
        currency: str,
        item_name: str,
        item_description: str,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
    ) -> CheckoutSession:
        """Create a one-item hosted checkout session.

        Args:
            amount_cents: Unit price in minor currency units
            currency: ISO currency code
            item_name: Line item title shown on the checkout page
            item_description: Line item subtitle
            success_url: Redirect after payment; may contain {CHECKOUT_SESSION_ID}
            cancel_url: Redirect when the buyer backs out
            metadata: Opaque key/values echoed back in webhook events

        Returns:
            CheckoutSession with the session ID and hosted URL

        Raises:
            GatewayError: If Stripe rejects the request or is unreachable
        """
        try:
            session = stripe.checkout.Session.create(
                api_key=self._secret_key,
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": currency,
                            "product_data": {
                                "name": item_name,
                                "description": item_description,
                            },
                            "unit_amount": amount_cents,
                        },
                        "quantity": 1,
                    }
                ],
                mode="payment",
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
            )
        except stripe.StripeError as e:
            logger.error(
                "checkout_session_create_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise GatewayError() from e

        payment_intent = getattr(session, "payment_intent", None)
        if payment_intent is not None and not isinstance(payment_intent, str):
            payment_intent = payment_intent.id

        logger.info(
            "checkout_session_created",
            session_id=session.id,
            amount_cents=amount_cents,
            currency=currency,
        )
        return CheckoutSession(id=session.id, url=session.url, payment_intent=payment_intent)

    def verify_signature(self, payload: bytes, signature: Optional[str]) -> None:
        """Check the Stripe-Signature header against the exact bytes received.

        Raises:
            InvalidSignature: If the header is missing, malformed, stale or wrong
        """
        if not signature:
            raise InvalidSignature("Missing signature")

        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidSignature() from e

        try:
            stripe.WebhookSignature.verify_header(
                text, signature, self._webhook_secret, self._signature_tolerance
            )
        except stripe.SignatureVerificationError as e:
            raise InvalidSignature() from e

    def construct_event(self, payload: bytes, signature: Optional[str]) -> WebhookEvent:
        """Verify, then parse, a webhook delivery.

        Raises:
            InvalidSignature: If verification fails
            BadRequest: If the verified body is not a valid event
        """
        self.verify_signature(payload, signature)
        try:
            return WebhookEvent.model_validate_json(payload)
        except ValidationError as e:
            raise BadRequest("Malformed webhook payload") from e
