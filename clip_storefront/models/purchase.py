"""Purchase models - one buyer's attempt to acquire one clip, and its download audit trail.

Status moves forward only:

    pending --(payment succeeded)--> completed
    pending --(payment failed)-----> failed
"""

import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from .base import Base, ensure_utc, new_id, utcnow


class PurchaseStatus(str, enum.Enum):
    """Purchase lifecycle status."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class Purchase(Base):
    __tablename__ = "purchases"

    id = Column(String(36), primary_key=True, default=new_id)
    clip_id = Column(String(36), ForeignKey("clips.id"), nullable=True, index=True)

    stripe_checkout_session_id = Column(String, nullable=True, unique=True)
    stripe_payment_intent_id = Column(String, nullable=True, index=True)

    buyer_email = Column(String, nullable=False, default="")
    buyer_name = Column(String, nullable=True)

    amount_cents = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="usd")
    status = Column(
        Enum(
            PurchaseStatus,
            name="purchase_status",
            native_enum=False,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        default=PurchaseStatus.PENDING,
    )

    # Download credential, issued once on completion
    download_token = Column(String, nullable=True, unique=True)
    download_expires_at = Column(DateTime(timezone=True), nullable=True)
    download_count = Column(Integer, nullable=False, default=0)
    max_downloads = Column(Integer, nullable=False, default=3)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    clip = relationship("Clip")
    download_logs = relationship("DownloadLog", back_populates="purchase")

    @property
    def downloads_remaining(self) -> int:
        return max(self.max_downloads - self.download_count, 0)

    def is_expired(self, now: datetime) -> bool:
        """True when ``now`` is at or past the credential expiry."""
        if self.download_expires_at is None:
            return True
        return now >= ensure_utc(self.download_expires_at)

    def __repr__(self) -> str:
        return f"Purchase(id={self.id!r}, clip_id={self.clip_id!r}, status={self.status!r})"


class DownloadLog(Base):
    """Append-only record of one successful redemption."""

    __tablename__ = "download_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    purchase_id = Column(String(36), ForeignKey("purchases.id"), nullable=False, index=True)
    clip_id = Column(String(36), ForeignKey("clips.id"), nullable=True)
    ip_address = Column(String, nullable=False, default="unknown")
    user_agent = Column(String, nullable=False, default="unknown")
    file_type = Column(String, nullable=False)
    downloaded_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    purchase = relationship("Purchase", back_populates="download_logs")
