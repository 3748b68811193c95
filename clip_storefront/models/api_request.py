"""API request models."""

from typing import Optional

from pydantic import BaseModel, Field


class CheckoutRequest(BaseModel):
    """Request to start checkout for a clip."""

    clipId: Optional[str] = Field(None, description="ID of the clip to purchase")

    class Config:
        json_schema_extra = {"example": {"clipId": "6f1c2d6e-1e0c-4b8e-9f7a-1f4b2c3d4e5f"}}
