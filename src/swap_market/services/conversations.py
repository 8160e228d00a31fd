"""Conversation aggregation for the signed-in user's inbox.

A conversation is not stored anywhere. It is derived from the flat message
table by grouping on the other participant and the listing, so the same two
users talking about two listings have two conversations.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from swap_market.schemas.message import MessageRead
from swap_market.services.errors import RetrievalError

if TYPE_CHECKING:
    from swap_market.repositories.listing_repo import ListingRepository
    from swap_market.repositories.message_repo import MessageRepository
    from swap_market.services.profiles import ProfileNameResolver

logger = logging.getLogger(__name__)

KEY_SEPARATOR = ":"
PLACEHOLDER_NAME = "Loading..."
LOAD_FAILED_MESSAGE = "Failed to load conversations. Please try again."


@dataclass(frozen=True)
class ConversationKey:
    """Identity of a conversation: the other participant plus the listing."""

    counterparty_id: str
    listing_id: str

    def __str__(self) -> str:
        return f"{self.counterparty_id}{KEY_SEPARATOR}{self.listing_id}"

    @classmethod
    def parse(cls, value: str) -> ConversationKey:
        """Parse the ``counterparty:listing`` form produced by ``str()``."""
        counterparty_id, sep, listing_id = value.partition(KEY_SEPARATOR)
        if not sep or not counterparty_id or not listing_id:
            raise ValueError(f"Invalid conversation key: {value!r}")
        return cls(counterparty_id=counterparty_id, listing_id=listing_id)

    @classmethod
    def for_message(cls, message: MessageRead, current_user_id: str) -> ConversationKey:
        return cls(
            counterparty_id=message.counterparty_of(current_user_id),
            listing_id=message.listing_id,
        )


@dataclass
class ConversationSummary:
    """Inbox row. Names and titles are filled in after grouping."""

    key: ConversationKey
    last_message: MessageRead
    unread_count: int = 0
    counterparty_name: str = PLACEHOLDER_NAME
    listing_title: str | None = None

    @property
    def counterparty_id(self) -> str:
        return self.key.counterparty_id

    @property
    def listing_id(self) -> str:
        return self.key.listing_id


def _recency(message: MessageRead) -> tuple:
    return (message.created_at, message.id)


def group_conversations(
    messages: Iterable[MessageRead], current_user_id: str
) -> list[ConversationSummary]:
    """Fold messages into conversation summaries, most recently active first.

    The newest message of each group becomes its ``last_message``. Unread
    counts only include messages addressed to ``current_user_id``. Messages
    the user did not take part in are ignored.
    """
    ordered = sorted(messages, key=_recency, reverse=True)
    summaries: dict[ConversationKey, ConversationSummary] = {}
    for message in ordered:
        if current_user_id not in (message.sender_id, message.recipient_id):
            continue
        if message.sender_id == message.recipient_id:
            continue
        key = ConversationKey.for_message(message, current_user_id)
        summary = summaries.get(key)
        if summary is None:
            summary = ConversationSummary(key=key, last_message=message)
            summaries[key] = summary
        if message.is_unread_for(current_user_id):
            summary.unread_count += 1
    return list(summaries.values())


class ConversationAggregator:
    """Build the conversation list for a user from the message store."""

    def __init__(
        self,
        messages: MessageRepository,
        names: ProfileNameResolver,
        listings: ListingRepository | None = None,
    ) -> None:
        self.messages = messages
        self.names = names
        self.listings = listings

    async def load(self, current_user_id: str | None) -> list[ConversationSummary]:
        """Fetch and group the user's messages.

        Returns an empty list for a signed-out caller. Names are left as
        placeholders; call ``resolve_names`` to fill them in.

        Raises:
            RetrievalError: If the messages cannot be fetched.
        """
        if not current_user_id:
            return []
        rows = await self.messages.list_for_user(current_user_id)
        summaries = group_conversations(rows, current_user_id)
        await self._attach_titles(summaries)
        return summaries

    async def resolve_names(self, summaries: Iterable[ConversationSummary]) -> None:
        """Replace placeholder names in place with resolved display names."""
        summaries = list(summaries)
        names = await self.names.resolve_many(s.counterparty_id for s in summaries)
        for summary in summaries:
            summary.counterparty_name = names[summary.counterparty_id]

    async def _attach_titles(self, summaries: list[ConversationSummary]) -> None:
        if self.listings is None or not summaries:
            return
        try:
            titles = await self.listings.titles_for(s.listing_id for s in summaries)
        except RetrievalError:
            # Titles are decoration; the inbox is still correct without them.
            logger.warning("Listing titles unavailable for conversation list", exc_info=True)
            return
        for summary in summaries:
            summary.listing_title = titles.get(summary.listing_id)


class Inbox:
    """Conversation list state for the signed-in user.

    A failed refresh keeps the previously loaded list and sets ``error``
    rather than showing an empty inbox.
    """

    def __init__(self, aggregator: ConversationAggregator, current_user_id: str | None) -> None:
        self.aggregator = aggregator
        self.current_user_id = current_user_id
        self.conversations: list[ConversationSummary] = []
        self.error: str | None = None
        self.loaded = False

    async def refresh(self) -> list[ConversationSummary]:
        """Reload the conversation list and resolve counterparty names."""
        try:
            summaries = await self.aggregator.load(self.current_user_id)
        except RetrievalError:
            logger.error(
                "Failed to load conversations for %s", self.current_user_id, exc_info=True
            )
            self.error = LOAD_FAILED_MESSAGE
            return self.conversations
        self.conversations = summaries
        self.error = None
        self.loaded = True
        await self.aggregator.resolve_names(summaries)
        return self.conversations

    def get(self, key: ConversationKey) -> ConversationSummary | None:
        for summary in self.conversations:
            if summary.key == key:
                return summary
        return None

    @property
    def unread_total(self) -> int:
        return sum(summary.unread_count for summary in self.conversations)
