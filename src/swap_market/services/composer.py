"""Outbound message validation and sending."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from swap_market.core.settings import settings
from swap_market.schemas.message import ListingRead, MessageRead
from swap_market.services.conversations import ConversationKey
from swap_market.services.errors import ComposeRejected, RetrievalError, SendError, SignInRequired

if TYPE_CHECKING:
    from swap_market.repositories.listing_repo import ListingRepository
    from swap_market.repositories.message_repo import MessageRepository
    from swap_market.services.threads import ConversationThread

logger = logging.getLogger(__name__)

INTEREST_TEMPLATE = "Hi! I'm interested in your {title}."
SEND_FAILED_MESSAGE = "Failed to send message. Please try again."
LISTING_GONE_MESSAGE = "This listing is no longer available."


class ListingNotFound(LookupError):
    """Raised when a message refers to a listing that does not exist."""


@dataclass(frozen=True)
class OutboundMessage:
    """A validated message ready to be stored."""

    sender_id: str
    recipient_id: str
    listing_id: str
    content: str


def validate_outbound(
    sender_id: str | None,
    recipient_id: str | None,
    listing_id: str | None,
    content: str | None,
    *,
    max_length: int | None = None,
) -> OutboundMessage:
    """Check an outbound message without touching the store.

    Raises:
        SignInRequired: If there is no sender.
        ComposeRejected: If the content, recipient or listing is unusable.
    """
    if not sender_id:
        raise SignInRequired()
    body = (content or "").strip()
    if not body:
        raise ComposeRejected(ComposeRejected.EMPTY_CONTENT, "Message cannot be empty")
    limit = settings.message_max_length if max_length is None else max_length
    if len(body) > limit:
        raise ComposeRejected(
            ComposeRejected.TOO_LONG, f"Message must be {limit} characters or less"
        )
    if not recipient_id:
        raise ComposeRejected(ComposeRejected.MISSING_RECIPIENT, "Message needs a recipient")
    if not listing_id:
        raise ComposeRejected(ComposeRejected.MISSING_LISTING, "Message needs a listing")
    if recipient_id == sender_id:
        raise ComposeRejected(ComposeRejected.SELF_MESSAGE, "You cannot message yourself")
    return OutboundMessage(
        sender_id=sender_id,
        recipient_id=recipient_id,
        listing_id=listing_id,
        content=body,
    )


class MessageComposer:
    """Validate and persist outbound messages."""

    def __init__(
        self, messages: MessageRepository, listings: ListingRepository | None = None
    ) -> None:
        self.messages = messages
        self.listings = listings

    async def send(
        self,
        current_user_id: str | None,
        recipient_id: str | None,
        listing_id: str | None,
        content: str | None,
    ) -> MessageRead:
        """Store a new unread message and return the stored row.

        Raises:
            SignInRequired: If no user is signed in.
            ComposeRejected: If validation fails.
            ListingNotFound: If a listing lookup is configured and the listing is missing.
            SendError: If the store rejects the write.
        """
        outbound = validate_outbound(current_user_id, recipient_id, listing_id, content)
        if self.listings is not None:
            await self._require_listing(outbound.listing_id)
        return await self._store(outbound)

    async def _store(self, outbound: OutboundMessage) -> MessageRead:
        message = await self.messages.insert(
            content=outbound.content,
            sender_id=outbound.sender_id,
            recipient_id=outbound.recipient_id,
            listing_id=outbound.listing_id,
        )
        logger.info(
            "Message %s sent to %s about listing %s",
            message.id,
            outbound.recipient_id,
            outbound.listing_id,
        )
        return message

    async def _require_listing(self, listing_id: str) -> ListingRead:
        if self.listings is None:
            raise ListingNotFound(listing_id)
        try:
            listing = await self.listings.get(listing_id)
        except RetrievalError as exc:
            raise SendError("Failed to look up listing") from exc
        if listing is None:
            raise ListingNotFound(listing_id)
        return listing

    async def start_listing_chat(self, current_user_id: str | None, listing_id: str) -> MessageRead:
        """Send the default interest message to a listing's owner.

        Raises:
            SignInRequired: If no user is signed in.
            ListingNotFound: If the listing does not exist.
            ComposeRejected: If the user owns the listing.
            SendError: If the listing lookup or the write fails.
        """
        if not current_user_id:
            raise SignInRequired()
        listing = await self._require_listing(listing_id)
        if listing.user_id == current_user_id:
            raise ComposeRejected(
                ComposeRejected.OWN_LISTING, "You cannot message yourself about your own listing"
            )
        outbound = validate_outbound(
            current_user_id,
            listing.user_id,
            listing.id,
            INTEREST_TEMPLATE.format(title=listing.title),
        )
        return await self._store(outbound)


class ComposeBox:
    """Draft input for one conversation.

    The draft is cleared only after a successful send. Failures leave the
    draft intact and record a message in ``error``.
    """

    def __init__(
        self,
        composer: MessageComposer,
        current_user_id: str | None,
        key: ConversationKey,
        thread: ConversationThread | None = None,
    ) -> None:
        self.composer = composer
        self.current_user_id = current_user_id
        self.key = key
        self.thread = thread
        self.draft = ""
        self.error: str | None = None

    async def submit(self) -> MessageRead | None:
        """Send the draft. Returns the stored message, or None if nothing was sent."""
        try:
            message = await self.composer.send(
                self.current_user_id, self.key.counterparty_id, self.key.listing_id, self.draft
            )
        except SignInRequired as exc:
            self.error = str(exc)
            return None
        except ComposeRejected as exc:
            # Whitespace-only drafts are ignored quietly.
            self.error = None if exc.reason == ComposeRejected.EMPTY_CONTENT else str(exc)
            return None
        except ListingNotFound:
            self.error = LISTING_GONE_MESSAGE
            return None
        except SendError:
            logger.warning("Send failed for conversation %s", self.key, exc_info=True)
            self.error = SEND_FAILED_MESSAGE
            return None

        self.draft = ""
        self.error = None
        if self.thread is not None:
            # The realtime echo may already have appended it; append() dedups by id.
            self.thread.append(message)
            await self.thread.reload()
        return message
