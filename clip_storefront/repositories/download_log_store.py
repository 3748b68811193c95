"""Download log store - append-only audit trail of redemptions."""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from clip_storefront.models.purchase import DownloadLog


class DownloadLogStore:
    """Append and read download log rows. Rows are never updated or deleted."""

    def __init__(self, session: Session):
        self._session = session

    def append(
        self,
        purchase_id: str,
        clip_id: Optional[str],
        ip_address: str,
        user_agent: str,
        file_type: str,
    ) -> DownloadLog:
        entry = DownloadLog(
            purchase_id=purchase_id,
            clip_id=clip_id,
            ip_address=ip_address or "unknown",
            user_agent=user_agent or "unknown",
            file_type=file_type,
        )
        self._session.add(entry)
        self._session.flush()
        return entry

    def list_for_purchase(self, purchase_id: str) -> list[DownloadLog]:
        return list(
            self._session.scalars(
                select(DownloadLog)
                .where(DownloadLog.purchase_id == purchase_id)
                .order_by(DownloadLog.downloaded_at.asc())
            )
        )

    def count_for_purchase(self, purchase_id: str) -> int:
        return self._session.scalar(
            select(func.count()).select_from(DownloadLog).where(DownloadLog.purchase_id == purchase_id)
        )
