"""Catalog models - venues, shows and the clips recorded at them.

Rows are written by the offline ingestion process; the storefront only reads them.
"""

import enum
from typing import Optional

from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from clip_storefront.utils.formatting import normalize_search_query

from .base import Base, new_id, utcnow


def _default_search_name(context) -> str:
    return normalize_search_query(context.get_current_parameters().get("performer_name"))


class FileVariant(str, enum.Enum):
    """Downloadable file variants of a clip."""

    ORIGINAL = "original"
    SOCIAL = "social"  # cropped for social platforms
    SOCIAL_SUBTITLED = "social_subtitled"  # cropped with burned-in subtitles
    SRT = "srt"  # subtitle text

    @classmethod
    def parse(cls, value: Optional[str], default: "FileVariant") -> "FileVariant":
        """Resolve a query-string selector, falling back to ``default`` when unknown."""
        if not value:
            return default
        try:
            return cls(value)
        except ValueError:
            return default


class Venue(Base):
    __tablename__ = "venues"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)

    shows = relationship("Show", back_populates="venue")


class Show(Base):
    __tablename__ = "shows"

    id = Column(String(36), primary_key=True, default=new_id)
    venue_id = Column(String(36), ForeignKey("venues.id"), nullable=False)
    show_date = Column(Date, nullable=False)
    show_name = Column(String, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    venue = relationship("Venue", back_populates="shows")
    clips = relationship("Clip", back_populates="show")


class Clip(Base):
    """A purchasable recording of one performer's set."""

    __tablename__ = "clips"

    id = Column(String(36), primary_key=True, default=new_id)
    show_id = Column(String(36), ForeignKey("shows.id"), nullable=False)
    performer_name = Column(String, nullable=False)
    # Lowercased alphanumeric form of performer_name, matched by search
    search_name = Column(String, nullable=False, index=True, default=_default_search_name)
    set_number = Column(Integer, nullable=False, default=1)
    duration_seconds = Column(Integer, nullable=True)

    original_path = Column(String, nullable=True)
    social_path = Column(String, nullable=True)
    social_subtitled_path = Column(String, nullable=True)
    srt_path = Column(String, nullable=True)
    preview_path = Column(String, nullable=True)

    intro_timestamp = Column(Float, nullable=True)
    confidence = Column(Float, nullable=True)

    # NULL means "use the configured default price"
    price_cents = Column(Integer, nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)
    promo_allowed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    show = relationship("Show", back_populates="clips")

    def path_for(self, variant: FileVariant) -> Optional[str]:
        """Stored file reference for a variant, or None if it was never produced."""
        return {
            FileVariant.ORIGINAL: self.original_path,
            FileVariant.SOCIAL: self.social_path,
            FileVariant.SOCIAL_SUBTITLED: self.social_subtitled_path,
            FileVariant.SRT: self.srt_path,
        }[variant]

    def available_variants(self) -> list[FileVariant]:
        return [variant for variant in FileVariant if self.path_for(variant)]

    def resolve_price(self, default_price_cents: int) -> int:
        return self.price_cents if self.price_cents else default_price_cents

    def __repr__(self) -> str:
        return f"Clip(id={self.id!r}, performer={self.performer_name!r}, set={self.set_number})"
