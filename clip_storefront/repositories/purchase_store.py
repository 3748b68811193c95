"""Purchase store - persistence for purchases and their download credentials.

Every state-changing method is a single conditional UPDATE so that the data
store's per-row atomicity is the only coordination needed between concurrent
requests. Callers inspect the returned row count to learn whether their
transition won.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, joinedload

from clip_storefront.models.purchase import Purchase, PurchaseStatus


class PurchaseNotFoundError(Exception):
    """Raised when a purchase is not found in the store."""

    pass


class PurchaseStore:
    """Purchase rows, accessed through one session."""

    def __init__(self, session: Session):
        self._session = session

    def add_pending(
        self,
        clip_id: str,
        checkout_session_id: str,
        amount_cents: int,
        currency: str,
        max_downloads: int,
        payment_intent_id: Optional[str] = None,
    ) -> Purchase:
        """Insert a pending purchase for a freshly created checkout session.

        Buyer details and the credential stay empty until the payment completes.
        """
        purchase = Purchase(
            clip_id=clip_id,
            stripe_checkout_session_id=checkout_session_id,
            stripe_payment_intent_id=payment_intent_id,
            buyer_email="",
            amount_cents=amount_cents,
            currency=currency,
            status=PurchaseStatus.PENDING,
            download_token=None,
            download_expires_at=None,
            download_count=0,
            max_downloads=max_downloads,
        )
        self._session.add(purchase)
        self._session.flush()
        return purchase

    def add_completed(
        self,
        clip_id: str,
        checkout_session_id: str,
        amount_cents: int,
        currency: str,
        max_downloads: int,
        buyer_email: str,
        buyer_name: str,
        payment_intent_id: Optional[str],
        download_token: str,
        download_expires_at: datetime,
        completed_at: datetime,
    ) -> Purchase:
        """Insert an already-completed purchase.

        Used when a completed payment arrives for a session whose pending row
        was never written.
        """
        purchase = Purchase(
            clip_id=clip_id,
            stripe_checkout_session_id=checkout_session_id,
            stripe_payment_intent_id=payment_intent_id,
            buyer_email=buyer_email,
            buyer_name=buyer_name,
            amount_cents=amount_cents,
            currency=currency,
            status=PurchaseStatus.COMPLETED,
            download_token=download_token,
            download_expires_at=download_expires_at,
            download_count=0,
            max_downloads=max_downloads,
            created_at=completed_at,
            completed_at=completed_at,
        )
        self._session.add(purchase)
        self._session.flush()
        return purchase

    def find_by_session(self, checkout_session_id: str) -> Optional[Purchase]:
        """Find purchase by checkout session ID (None if not found)."""
        return self._session.scalars(
            select(Purchase)
            .options(joinedload(Purchase.clip))
            .where(Purchase.stripe_checkout_session_id == checkout_session_id)
        ).first()

    def find_by_token(self, token: str) -> Optional[Purchase]:
        """Find purchase (with its clip) by download token (None if not found)."""
        if not token:
            return None
        return self._session.scalars(
            select(Purchase)
            .options(joinedload(Purchase.clip))
            .where(Purchase.download_token == token)
        ).first()

    def get_by_token(self, token: str) -> Purchase:
        """Get purchase by download token.

        Raises:
            PurchaseNotFoundError: If token not found
        """
        purchase = self.find_by_token(token)
        if purchase is None:
            raise PurchaseNotFoundError("Purchase not found for download token")
        return purchase

    def get(self, purchase_id: str) -> Purchase:
        """Get purchase by ID, re-reading the row from the store.

        Raises:
            PurchaseNotFoundError: If ID not found
        """
        purchase = self._session.get(Purchase, purchase_id, populate_existing=True)
        if purchase is None:
            raise PurchaseNotFoundError(f"Purchase not found: {purchase_id}")
        return purchase

    def complete_pending(
        self,
        checkout_session_id: str,
        buyer_email: str,
        buyer_name: str,
        payment_intent_id: Optional[str],
        download_token: str,
        download_expires_at: datetime,
        completed_at: datetime,
    ) -> int:
        """Move a pending purchase to completed and attach its credential.

        Matches only rows still pending, so a redelivered event leaves an
        already-completed purchase untouched.

        Returns:
            Number of rows transitioned (0 or 1)
        """
        result = self._session.execute(
            update(Purchase)
            .where(
                Purchase.stripe_checkout_session_id == checkout_session_id,
                Purchase.status == PurchaseStatus.PENDING,
            )
            .values(
                status=PurchaseStatus.COMPLETED,
                buyer_email=buyer_email,
                buyer_name=buyer_name,
                stripe_payment_intent_id=payment_intent_id,
                download_token=download_token,
                download_expires_at=download_expires_at,
                completed_at=completed_at,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def fail_pending_by_payment_intent(self, payment_intent_id: str) -> int:
        """Move pending purchases for a payment intent to failed.

        Returns:
            Number of rows transitioned
        """
        result = self._session.execute(
            update(Purchase)
            .where(
                Purchase.stripe_payment_intent_id == payment_intent_id,
                Purchase.status == PurchaseStatus.PENDING,
            )
            .values(status=PurchaseStatus.FAILED)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def find_by_payment_intent(self, payment_intent_id: str) -> Optional[Purchase]:
        return self._session.scalars(
            select(Purchase).where(Purchase.stripe_payment_intent_id == payment_intent_id)
        ).first()

    def consume_download(self, purchase_id: str, now: datetime) -> bool:
        """Count one download if the credential still allows it.

        The limit and expiry checks are part of the UPDATE itself, so two
        concurrent redemptions of the last remaining download cannot both win.

        Returns:
            True if the count was incremented, False if the purchase is
            expired, exhausted or not completed
        """
        result = self._session.execute(
            update(Purchase)
            .where(
                Purchase.id == purchase_id,
                Purchase.status == PurchaseStatus.COMPLETED,
                Purchase.download_count < Purchase.max_downloads,
                Purchase.download_expires_at > now,
            )
            .values(download_count=Purchase.download_count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def count(self) -> int:
        return self._session.scalar(select(func.count()).select_from(Purchase))

    def count_by_status(self, status: PurchaseStatus) -> int:
        return self._session.scalar(
            select(func.count()).select_from(Purchase).where(Purchase.status == status)
        )
