"""Storefront configuration models.

Models for config/storefront.yaml.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .catalog import FileVariant


class StoreSettings(BaseModel):
    """Public storefront settings."""

    name: str = Field(default="Set-Clip", description="Display name of the storefront")
    public_base_url: str = Field(
        default="http://localhost:3000",
        description="Base URL used to build redirect and download links",
    )
    currency: str = Field(default="usd", description="ISO 4217 currency code, lowercase")
    default_price_cents: int = Field(
        default=500, ge=0, description="Price used when a clip has no price of its own"
    )

    @field_validator("public_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("currency")
    @classmethod
    def lowercase_currency(cls, value: str) -> str:
        return value.lower()


class DownloadSettings(BaseModel):
    """Download credential limits."""

    max_downloads: int = Field(default=3, ge=1, description="Redemptions allowed per purchase")
    link_ttl_hours: int = Field(default=48, ge=1, description="Hours a download link stays valid")
    default_variant: FileVariant = Field(
        default=FileVariant.SOCIAL_SUBTITLED,
        description="Variant served when the request names none or an unknown one",
    )


class DatabaseSettings(BaseModel):
    """Relational store connection settings."""

    url: str = Field(default="sqlite:///./clip_storefront.db", description="Service credential URL")
    readonly_url: Optional[str] = Field(
        None, description="Read-only credential URL for presentation queries"
    )
    echo: bool = Field(default=False, description="Echo SQL statements")
    auto_create_schema: bool = Field(default=True, description="Create tables on startup")


class PollerSettings(BaseModel):
    """Success page polling budget."""

    max_attempts: int = Field(default=10, ge=1)
    delay_seconds: float = Field(default=1.0, ge=0)


class StorefrontConfig(BaseModel):
    """Complete storefront.yaml configuration."""

    store: StoreSettings = Field(default_factory=StoreSettings)
    downloads: DownloadSettings = Field(default_factory=DownloadSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    poller: PollerSettings = Field(default_factory=PollerSettings)

    class Config:
        json_schema_extra = {
            "example": {
                "store": {
                    "name": "Set-Clip",
                    "public_base_url": "https://set-clip.example.com",
                    "currency": "usd",
                    "default_price_cents": 500,
                },
                "downloads": {
                    "max_downloads": 3,
                    "link_ttl_hours": 48,
                    "default_variant": "social_subtitled",
                },
                "database": {"url": "postgresql+psycopg://store@db/clips"},
                "poller": {"max_attempts": 10, "delay_seconds": 1.0},
            }
        }
