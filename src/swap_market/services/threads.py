"""Message threads: history loading, read-state and live delivery.

``ConversationThread`` owns the state of one open conversation. Opening it
loads the history, marks the caller's unread messages read and attaches a
realtime subscription for the listing; closing it releases the
subscription. ``ActiveThread`` keeps at most one thread open at a time.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING, Any

from swap_market.schemas.message import MessageRead
from swap_market.services.conversations import ConversationKey
from swap_market.services.errors import MarkReadError, RetrievalError
from swap_market.services.realtime import MessageEvent, RealtimeFeed, Subscription

if TYPE_CHECKING:
    from swap_market.repositories.message_repo import MessageRepository

logger = logging.getLogger(__name__)

LOAD_FAILED_MESSAGE = "Failed to load messages. Please try again."


def unread_ids(messages: Iterable[MessageRead], current_user_id: str) -> list[int]:
    """Return ids of messages addressed to the user that are still unread."""
    return [m.id for m in messages if m.is_unread_for(current_user_id)]


class ThreadLoader:
    """Fetch one conversation's history and reconcile its read-state."""

    def __init__(self, messages: MessageRepository) -> None:
        self.messages = messages

    async def load(self, current_user_id: str, key: ConversationKey) -> list[MessageRead]:
        """Return the conversation's messages in ascending creation order.

        Raises:
            RetrievalError: If the history cannot be fetched.
        """
        return await self.messages.list_between(
            current_user_id, key.counterparty_id, listing_id=key.listing_id
        )

    async def mark_read(
        self, current_user_id: str, messages: Iterable[MessageRead]
    ) -> list[int]:
        """Mark the user's unread messages read and return the ids submitted.

        Raises:
            MarkReadError: If the update fails.
        """
        ids = unread_ids(messages, current_user_id)
        if not ids:
            return []
        changed = await self.messages.mark_read(ids, current_user_id)
        logger.debug("Marked %d of %d message(s) read for %s", changed, len(ids), current_user_id)
        return ids


class ConversationThread:
    """State of one open conversation.

    Attributes:
        messages: Chronological history followed by realtime arrivals.
        error: User-facing message for the last failed load, if any.
    """

    def __init__(
        self,
        *,
        loader: ThreadLoader,
        feed: RealtimeFeed | None,
        current_user_id: str,
        key: ConversationKey,
        on_read: Callable[[], Awaitable[Any]] | None = None,
        on_message: Callable[[MessageRead], Any] | None = None,
    ) -> None:
        self.loader = loader
        self.feed = feed
        self.current_user_id = current_user_id
        self.key = key
        self.on_read = on_read
        self.on_message = on_message
        self.messages: list[MessageRead] = []
        self.error: str | None = None
        self._ids: set[int] = set()
        self._subscription: Subscription | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def live(self) -> bool:
        return self._subscription is not None and self._subscription.active

    async def open(self, *, live: bool = True) -> ConversationThread:
        """Subscribe to new messages (unless ``live`` is False) and load the history."""
        if self._closed:
            return self
        if live and self.feed is not None and self._subscription is None:
            self._subscription = self.feed.subscribe(self.key.listing_id, self.receive)
        await self.reload()
        return self

    async def reload(self) -> list[MessageRead]:
        """Fetch the history again and mark newly seen messages read.

        On failure the previously shown messages stay in place.
        """
        if self._closed:
            return self.messages
        try:
            rows = await self.loader.load(self.current_user_id, self.key)
        except RetrievalError:
            logger.error("Failed to load thread %s", self.key, exc_info=True)
            self.error = LOAD_FAILED_MESSAGE
            return self.messages
        if self._closed:
            return self.messages

        # Keep realtime arrivals that the query did not return yet.
        loaded_ids = {m.id for m in rows}
        pending = [m for m in self.messages if m.id not in loaded_ids]
        self.messages = list(rows) + pending
        self._ids = {m.id for m in self.messages}
        self.error = None
        await self._mark_read()
        return self.messages

    def receive(self, event: MessageEvent) -> bool:
        """Realtime listener: append the event's message if it belongs here."""
        if self._closed:
            return False
        record = event.record
        if record.listing_id != self.key.listing_id:
            return False
        if not record.is_between(self.current_user_id, self.key.counterparty_id):
            return False
        return self.append(record)

    def append(self, message: MessageRead) -> bool:
        """Append a message at the tail unless the thread already holds it."""
        if self._closed or message.id in self._ids:
            return False
        self.messages.append(message)
        self._ids.add(message.id)
        if self.on_message is not None:
            self.on_message(message)
        return True

    async def close(self) -> None:
        """Release the realtime subscription. Later results are ignored."""
        self._closed = True
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    async def _mark_read(self) -> None:
        try:
            ids = await self.loader.mark_read(self.current_user_id, self.messages)
        except MarkReadError:
            # Retried on the next load.
            logger.warning("Could not mark thread %s read", self.key, exc_info=True)
            return
        if not ids or self._closed:
            return
        marked = set(ids)
        self.messages = [
            m.model_copy(update={"read": True}) if m.id in marked else m for m in self.messages
        ]
        if self.on_read is not None:
            await self.on_read()

    async def __aenter__(self) -> ConversationThread:
        return await self.open()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


ThreadFactory = Callable[[ConversationKey], ConversationThread]


class ActiveThread:
    """Slot holding the single open thread.

    Selecting another conversation closes the current thread before the new
    one subscribes, so two threads never receive the same feed at once.
    """

    def __init__(self, factory: ThreadFactory) -> None:
        self.factory = factory
        self._current: ConversationThread | None = None

    @property
    def current(self) -> ConversationThread | None:
        return self._current

    async def select(self, key: ConversationKey) -> ConversationThread:
        if self._current is not None and self._current.key == key and not self._current.closed:
            return self._current
        await self.clear()
        thread = self.factory(key)
        self._current = thread
        await thread.open()
        return thread

    async def clear(self) -> None:
        thread, self._current = self._current, None
        if thread is not None:
            await thread.close()
