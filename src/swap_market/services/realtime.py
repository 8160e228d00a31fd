"""In-process realtime feed of message insert events.

The feed is the push side of the data store: the message repository
publishes an ``INSERT`` event after every committed message and each
subscription receives the events for the listing it filters on, in the
order they were published.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from swap_market.schemas.message import MessageRead
from swap_market.services.errors import SubscriptionClosed

logger = logging.getLogger(__name__)

INSERT = "INSERT"


@dataclass(frozen=True)
class MessageEvent:
    """Row-level change notification for the ``messages`` table."""

    event_type: str
    record: MessageRead

    @classmethod
    def insert(cls, record: MessageRead) -> MessageEvent:
        return cls(event_type=INSERT, record=record)


Listener = Callable[[MessageEvent], Any]


class Subscription:
    """Handle for one live listener; releasing it stops delivery.

    Usable as a context manager so the listener is released when the owning
    scope ends.
    """

    def __init__(self, feed: RealtimeFeed, listing_id: str, listener: Listener) -> None:
        self._feed = feed
        self.listing_id = listing_id
        self._listener = listener
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def deliver(self, event: MessageEvent) -> bool:
        """Hand an event to the listener. Returns False if nothing was delivered."""
        if not self._active:
            raise SubscriptionClosed(f"Subscription for listing {self.listing_id} is closed")
        if event.event_type != INSERT or event.record.listing_id != self.listing_id:
            return False
        self._listener(event)
        return True

    def close(self) -> None:
        """Release the subscription. Calling it twice is harmless."""
        if not self._active:
            return
        self._active = False
        self._feed._discard(self)
        logger.debug("Released realtime subscription for listing %s", self.listing_id)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class RealtimeFeed:
    """Publish/subscribe hub for message inserts filtered by listing."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[Subscription]] = defaultdict(list)

    def subscribe(self, listing_id: str, listener: Listener) -> Subscription:
        """Register ``listener`` for inserts on messages about ``listing_id``."""
        subscription = Subscription(self, listing_id, listener)
        self._subscriptions[listing_id].append(subscription)
        logger.debug("Opened realtime subscription for listing %s", listing_id)
        return subscription

    def publish(self, event: MessageEvent) -> int:
        """Deliver ``event`` to matching subscribers and return how many received it.

        A failing listener is logged and skipped; the remaining subscribers
        still receive the event.
        """
        delivered = 0
        for subscription in list(self._subscriptions.get(event.record.listing_id, ())):
            if not subscription.active:
                continue
            try:
                if subscription.deliver(event):
                    delivered += 1
            except Exception:
                logger.warning(
                    "Realtime listener failed for message %s on listing %s",
                    event.record.id,
                    event.record.listing_id,
                    exc_info=True,
                )
        return delivered

    def subscriber_count(self, listing_id: str | None = None) -> int:
        """Return the number of live subscriptions, optionally for one listing."""
        if listing_id is not None:
            return len(self._subscriptions.get(listing_id, ()))
        return sum(len(subs) for subs in self._subscriptions.values())

    def _discard(self, subscription: Subscription) -> None:
        subs = self._subscriptions.get(subscription.listing_id)
        if not subs:
            return
        try:
            subs.remove(subscription)
        except ValueError:
            return
        if not subs:
            del self._subscriptions[subscription.listing_id]


class _RealtimeFeedSingleton:
    """Singleton wrapper for RealtimeFeed."""

    _instance: RealtimeFeed | None = None

    @classmethod
    def get_instance(cls) -> RealtimeFeed:
        """Get or create the singleton RealtimeFeed instance."""
        if cls._instance is None:
            cls._instance = RealtimeFeed()
        return cls._instance


def get_realtime_feed() -> RealtimeFeed:
    """Return the process-wide realtime feed."""
    return _RealtimeFeedSingleton.get_instance()
