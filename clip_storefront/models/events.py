"""Payment gateway webhook event models.

Maps the subset of the Stripe event schema the storefront reads. Unknown
fields are ignored so gateway API upgrades do not break parsing.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"


class CustomerDetails(BaseModel):
    """Buyer details captured by the hosted checkout page."""

    email: Optional[str] = Field(None, description="Buyer email")
    name: Optional[str] = Field(None, description="Buyer name")


class CheckoutSessionObject(BaseModel):
    """``data.object`` of a checkout.session.* event."""

    id: str = Field(..., description="Checkout session ID (cs_...)")
    payment_intent: Optional[str] = Field(None, description="Payment intent ID (pi_...)")
    customer_details: Optional[CustomerDetails] = Field(None)
    metadata: dict[str, str] = Field(default_factory=dict, description="Opaque metadata set at creation")
    amount_total: Optional[int] = Field(None, description="Charged amount in minor units")
    currency: Optional[str] = Field(None, description="Charged currency")

    @property
    def clip_id(self) -> Optional[str]:
        return self.metadata.get("clip_id") or None

    @property
    def buyer_email(self) -> str:
        if self.customer_details and self.customer_details.email:
            return self.customer_details.email
        return ""

    @property
    def buyer_name(self) -> str:
        if self.customer_details and self.customer_details.name:
            return self.customer_details.name
        return ""

    class Config:
        json_schema_extra = {
            "example": {
                "id": "cs_test_a1b2c3",
                "payment_intent": "pi_3Nx...",
                "customer_details": {"email": "fan@example.com", "name": "Sam Fan"},
                "metadata": {"clip_id": "6f1c2d6e-1e0c-4b8e-9f7a-1f4b2c3d4e5f"},
                "amount_total": 500,
                "currency": "usd",
            }
        }


class PaymentIntentObject(BaseModel):
    """``data.object`` of a payment_intent.* event."""

    id: str = Field(..., description="Payment intent ID (pi_...)")
    status: Optional[str] = Field(None)


class EventData(BaseModel):
    object: dict[str, Any] = Field(default_factory=dict)


class WebhookEvent(BaseModel):
    """Root event delivered to the webhook endpoint."""

    id: str = Field(..., description="Event ID (evt_...)")
    type: str = Field(..., description="Event type, e.g. checkout.session.completed")
    data: EventData = Field(default_factory=EventData)

    def checkout_session(self) -> CheckoutSessionObject:
        return CheckoutSessionObject.model_validate(self.data.object)

    def payment_intent(self) -> PaymentIntentObject:
        return PaymentIntentObject.model_validate(self.data.object)
