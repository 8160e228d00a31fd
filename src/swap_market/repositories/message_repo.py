"""Data access helpers for working with messages."""
from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from swap_market.models.message import Message
from swap_market.schemas.message import MessageRead
from swap_market.services.errors import MarkReadError, RetrievalError, SendError
from swap_market.services.realtime import MessageEvent, RealtimeFeed

__all__ = ["MessageRepository"]

logger = logging.getLogger(__name__)


class MessageRepository:
    """Thin wrapper around database access for message rows.

    Every method returns detached ``MessageRead`` snapshots so callers never
    hold live ORM state. Methods are coroutines over the synchronous
    ``Session`` from ``swap_market.db.session``; queries run inline on the
    calling event loop, as the API endpoints do with ``SessionDep``.
    """

    def __init__(self, session: Session, feed: RealtimeFeed | None = None) -> None:
        """Initialize the repository with a SQLAlchemy session.

        Args:
            session: Session used for every query and write.
            feed: Realtime feed notified after each committed insert.
        """
        self.session = session
        self.feed = feed

    async def list_for_user(self, user_id: str) -> list[MessageRead]:
        """Return every message the user sent or received, newest first."""
        stmt = (
            select(Message)
            .where(or_(Message.sender_id == user_id, Message.recipient_id == user_id))
            .order_by(Message.created_at.desc(), Message.id.desc())
        )
        try:
            rows = self.session.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RetrievalError(f"Failed to fetch messages for user {user_id}") from exc
        return [MessageRead.model_validate(row) for row in rows]

    async def list_between(
        self, user_a: str, user_b: str, listing_id: str | None = None
    ) -> list[MessageRead]:
        """Return messages exchanged by two users in ascending creation order.

        Args:
            user_a: One participant.
            user_b: The other participant.
            listing_id: Restrict the history to one listing when given.
        """
        stmt = select(Message).where(
            or_(
                and_(Message.sender_id == user_a, Message.recipient_id == user_b),
                and_(Message.sender_id == user_b, Message.recipient_id == user_a),
            )
        )
        if listing_id is not None:
            stmt = stmt.where(Message.listing_id == listing_id)
        stmt = stmt.order_by(Message.created_at.asc(), Message.id.asc())
        try:
            rows = self.session.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RetrievalError(f"Failed to fetch messages between {user_a} and {user_b}") from exc
        return [MessageRead.model_validate(row) for row in rows]

    async def mark_read(self, message_ids: Iterable[int], recipient_id: str) -> int:
        """Flag the recipient's unread messages among ``message_ids`` as read.

        Messages addressed to someone else or already read are left alone.

        Returns:
            Number of rows that changed.
        """
        ids = sorted(set(message_ids))
        if not ids:
            return 0
        stmt = (
            update(Message)
            .where(
                Message.id.in_(ids),
                Message.recipient_id == recipient_id,
                Message.read.is_(False),
            )
            .values(read=True)
        )
        try:
            result = self.session.execute(stmt)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise MarkReadError(f"Failed to mark {len(ids)} message(s) read") from exc
        return int(result.rowcount or 0)

    async def insert(
        self,
        *,
        content: str,
        sender_id: str,
        recipient_id: str,
        listing_id: str,
    ) -> MessageRead:
        """Persist a new unread message and announce it on the realtime feed."""
        message = Message(
            content=content,
            sender_id=sender_id,
            recipient_id=recipient_id,
            listing_id=listing_id,
            read=False,
        )
        try:
            self.session.add(message)
            self.session.commit()
            self.session.refresh(message)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise SendError("Failed to store message") from exc

        record = MessageRead.model_validate(message)
        if self.feed is not None:
            delivered = self.feed.publish(MessageEvent.insert(record))
            logger.debug("Message %s published to %d subscriber(s)", record.id, delivered)
        return record
