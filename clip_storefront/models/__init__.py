"""ORM tables, pydantic API models and webhook event models."""

# ORM base
from .base import Base

# Catalog tables
from .catalog import (
    Clip,
    FileVariant,
    Show,
    Venue,
)

# Purchase tables
from .purchase import (
    DownloadLog,
    Purchase,
    PurchaseStatus,
)

# Webhook events
from .events import (
    CHECKOUT_SESSION_COMPLETED,
    PAYMENT_INTENT_FAILED,
    CheckoutSessionObject,
    CustomerDetails,
    PaymentIntentObject,
    WebhookEvent,
)

# API requests / responses
from .api_request import CheckoutRequest
from .api_response import (
    CheckoutResponse,
    ClipDetail,
    ClipSummary,
    DownloadResponse,
    ErrorResponse,
    HealthResponse,
    PurchaseStatusResponse,
    WebhookAck,
)

# Configuration
from .store_config import (
    DatabaseSettings,
    DownloadSettings,
    PollerSettings,
    StoreSettings,
    StorefrontConfig,
)

__all__ = [
    "Base",
    # Catalog
    "Clip",
    "FileVariant",
    "Show",
    "Venue",
    # Purchases
    "DownloadLog",
    "Purchase",
    "PurchaseStatus",
    # Events
    "CHECKOUT_SESSION_COMPLETED",
    "PAYMENT_INTENT_FAILED",
    "CheckoutSessionObject",
    "CustomerDetails",
    "PaymentIntentObject",
    "WebhookEvent",
    # API
    "CheckoutRequest",
    "CheckoutResponse",
    "ClipDetail",
    "ClipSummary",
    "DownloadResponse",
    "ErrorResponse",
    "HealthResponse",
    "PurchaseStatusResponse",
    "WebhookAck",
    # Configuration
    "DatabaseSettings",
    "DownloadSettings",
    "PollerSettings",
    "StoreSettings",
    "StorefrontConfig",
]
