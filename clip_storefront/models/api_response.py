"""API response models.

Field names follow the JSON the storefront pages consume (camelCase).
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CheckoutResponse(BaseModel):
    """Response for POST /api/checkout."""

    url: str = Field(..., description="Hosted checkout page to redirect the buyer to")


class WebhookAck(BaseModel):
    """Response for POST /api/webhook."""

    received: bool = Field(default=True)


class DownloadResponse(BaseModel):
    """Response for GET /api/download/{token}."""

    message: str = Field(default="Download ready")
    filePath: str = Field(..., description="Stored reference of the authorized file")
    downloadsRemaining: int = Field(..., description="Redemptions left after this one")
    expiresAt: datetime = Field(..., description="Credential expiry")

    class Config:
        json_schema_extra = {
            "example": {
                "message": "Download ready",
                "filePath": "clips/2025-01-10/jane-doe-set1-social-sub.mp4",
                "downloadsRemaining": 2,
                "expiresAt": "2025-01-12T20:15:00Z",
            }
        }


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Human-readable error message")


class ClipSummary(BaseModel):
    """One search result row."""

    id: str
    performerName: str
    setNumber: int
    durationSeconds: Optional[int] = None
    duration: str = Field(..., description="Display duration, m:ss")
    priceCents: int
    price: str = Field(..., description="Display price, e.g. $5.00")
    isAvailable: bool
    promoAllowed: bool
    previewPath: Optional[str] = None
    showDate: str
    showName: Optional[str] = None
    venueName: str
    venueSlug: str


class ClipDetail(ClipSummary):
    """Clip page payload."""

    venueCity: Optional[str] = None
    venueState: Optional[str] = None
    availableVariants: list[str] = Field(default_factory=list)


class PurchaseStatusResponse(BaseModel):
    """Success page payload, looked up by checkout session."""

    status: str
    performerName: Optional[str] = None
    downloadToken: Optional[str] = Field(None, description="Present only once completed")
    expiresAt: Optional[datetime] = None
    maxDownloads: int
    downloadsRemaining: int
    availableVariants: list[str] = Field(default_factory=list)

    @property
    def is_ready(self) -> bool:
        return self.status == "completed" and bool(self.downloadToken)


class HealthResponse(BaseModel):
    status: str
    database: str
