# tests/services/test_realtime.py
"""Tests for the in-process realtime feed."""

import logging

import pytest

from swap_market.services.errors import SubscriptionClosed
from swap_market.services.realtime import (
    INSERT,
    MessageEvent,
    RealtimeFeed,
    get_realtime_feed,
)
from tests.conftest import message_read


def test_publish_reaches_only_matching_listing() -> None:
    feed = RealtimeFeed()
    first, second = [], []
    feed.subscribe("listing-1", first.append)
    feed.subscribe("listing-2", second.append)

    delivered = feed.publish(MessageEvent.insert(message_read(1, "a", "b", "listing-1")))

    assert delivered == 1
    assert [event.record.id for event in first] == [1]
    assert second == []


def test_events_arrive_in_publish_order() -> None:
    feed = RealtimeFeed()
    seen = []
    feed.subscribe("listing-1", lambda event: seen.append(event.record.id))

    for message_id in (3, 1, 2):
        feed.publish(MessageEvent.insert(message_read(message_id, "a", "b", "listing-1")))

    assert seen == [3, 1, 2]


def test_insert_event_type() -> None:
    event = MessageEvent.insert(message_read(1, "a", "b"))

    assert event.event_type == INSERT


def test_closed_subscription_stops_delivery() -> None:
    feed = RealtimeFeed()
    seen = []
    subscription = feed.subscribe("listing-1", seen.append)

    subscription.close()
    subscription.close()

    assert subscription.active is False
    assert feed.subscriber_count() == 0
    assert feed.publish(MessageEvent.insert(message_read(1, "a", "b", "listing-1"))) == 0
    assert seen == []


def test_deliver_on_closed_subscription_raises() -> None:
    feed = RealtimeFeed()
    subscription = feed.subscribe("listing-1", lambda event: None)
    subscription.close()

    with pytest.raises(SubscriptionClosed):
        subscription.deliver(MessageEvent.insert(message_read(1, "a", "b", "listing-1")))


def test_subscription_context_manager_releases() -> None:
    feed = RealtimeFeed()

    with feed.subscribe("listing-1", lambda event: None) as subscription:
        assert feed.subscriber_count("listing-1") == 1

    assert subscription.active is False
    assert feed.subscriber_count("listing-1") == 0


def test_failing_listener_does_not_block_others(caplog) -> None:
    feed = RealtimeFeed()
    seen = []

    def _boom(event):
        raise RuntimeError("listener exploded")

    feed.subscribe("listing-1", _boom)
    feed.subscribe("listing-1", seen.append)

    with caplog.at_level(logging.WARNING, logger="swap_market.services.realtime"):
        delivered = feed.publish(MessageEvent.insert(message_read(1, "a", "b", "listing-1")))

    assert delivered == 1
    assert len(seen) == 1
    assert "Realtime listener failed" in caplog.text


def test_get_realtime_feed_is_a_singleton() -> None:
    assert get_realtime_feed() is get_realtime_feed()
