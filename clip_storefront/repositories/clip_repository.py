"""Clip repository - read access to the catalog (clips joined with show and venue)."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from clip_storefront.models.catalog import Clip, Show
from clip_storefront.utils.formatting import normalize_search_query


class ClipNotFoundError(Exception):
    """Raised when a clip is not found in the catalog."""

    pass


class ClipRepository:
    """Catalog lookups. Never writes; clips are owned by ingestion."""

    def __init__(self, session: Session):
        self._session = session

    def _with_show(self):
        return select(Clip).options(joinedload(Clip.show).joinedload(Show.venue))

    def find_with_show(self, clip_id: str) -> Optional[Clip]:
        """Find a clip with its show and venue loaded (None if not found)."""
        if not clip_id:
            return None
        return self._session.scalars(self._with_show().where(Clip.id == clip_id)).first()

    def get_with_show(self, clip_id: str) -> Clip:
        """Get a clip with its show and venue loaded.

        Raises:
            ClipNotFoundError: If no clip has this ID
        """
        clip = self.find_with_show(clip_id)
        if clip is None:
            raise ClipNotFoundError(f"Clip not found: {clip_id}")
        return clip

    def search(self, query: str, limit: int = 100) -> list[Clip]:
        """Search clips by performer name, newest show first.

        Args:
            query: Raw user input; normalized before matching
            limit: Maximum rows returned

        Returns:
            Matching clips with show and venue loaded (empty for an empty query)
        """
        normalized = normalize_search_query(query)
        if not normalized:
            return []

        statement = (
            self._with_show()
            .join(Clip.show)
            .where(Clip.search_name.like(f"%{normalized}%"))
            .order_by(Show.show_date.desc(), Clip.set_number.asc())
            .limit(limit)
        )
        return list(self._session.scalars(statement).unique())
