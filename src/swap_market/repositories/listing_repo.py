"""Read-only access to listings referenced by messages."""
from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from swap_market.models.listing import Listing
from swap_market.schemas.message import ListingRead
from swap_market.services.errors import RetrievalError

__all__ = ["ListingRepository"]


class ListingRepository:
    """Lookups against the listings table.

    Uses the synchronous ``Session`` behind coroutine methods, like ``MessageRepository``.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    async def get(self, listing_id: str) -> ListingRead | None:
        """Return a listing by identifier, or None if it does not exist."""
        try:
            listing = self.session.get(Listing, listing_id)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RetrievalError(f"Failed to fetch listing {listing_id}") from exc
        if listing is None:
            return None
        return ListingRead.model_validate(listing)

    async def titles_for(self, listing_ids: Iterable[str]) -> dict[str, str]:
        """Return a mapping of listing id to title for the ids that exist."""
        ids = sorted(set(listing_ids))
        if not ids:
            return {}
        stmt = select(Listing.id, Listing.title).where(Listing.id.in_(ids))
        try:
            rows = self.session.execute(stmt).all()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RetrievalError("Failed to fetch listing titles") from exc
        return {row.id: row.title for row in rows}
