"""Read-only access to user profiles."""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from swap_market.models.profile import Profile
from swap_market.services.errors import RetrievalError

__all__ = ["ProfileRepository"]


class ProfileRepository:
    """Lookups against the profiles table.

    Uses the synchronous ``Session`` behind coroutine methods, like ``MessageRepository``.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    async def get_full_name(self, user_id: str) -> str | None:
        """Return the full name on file for ``user_id``, or None when absent."""
        stmt = select(Profile.full_name).where(Profile.id == user_id)
        try:
            return self.session.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RetrievalError(f"Failed to fetch profile {user_id}") from exc
