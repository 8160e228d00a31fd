# tests/test_scenarios.py
"""End-to-end conversations through the services and a real database."""

import pytest

from swap_market.services.composer import ComposeBox, MessageComposer
from swap_market.services.conversations import ConversationAggregator, ConversationKey, Inbox
from swap_market.services.threads import ActiveThread, ConversationThread, ThreadLoader
from tests.conftest import BUYER_ID, SELLER_ID


def _inbox(user_id, message_repo, name_resolver, listing_repo) -> Inbox:
    return Inbox(ConversationAggregator(message_repo, name_resolver, listing_repo), user_id)


def _thread_factory(user_id, message_repo, realtime_feed, **kwargs):
    def _factory(key: ConversationKey) -> ConversationThread:
        return ConversationThread(
            loader=ThreadLoader(message_repo),
            feed=realtime_feed,
            current_user_id=user_id,
            key=key,
            **kwargs,
        )

    return _factory


@pytest.mark.asyncio
async def test_interest_read_and_live_reply(
    message_repo, listing_repo, name_resolver, realtime_feed, profiles, macbook_listing
) -> None:
    composer = MessageComposer(message_repo, listing_repo)
    first = await composer.start_listing_chat(BUYER_ID, macbook_listing.id)

    # The buyer keeps the conversation open while waiting for an answer.
    buyer_view = ActiveThread(_thread_factory(BUYER_ID, message_repo, realtime_feed))
    buyer_thread = await buyer_view.select(ConversationKey(SELLER_ID, macbook_listing.id))
    assert [m.id for m in buyer_thread.messages] == [first.id]

    seller_inbox = _inbox(SELLER_ID, message_repo, name_resolver, listing_repo)
    [summary] = await seller_inbox.refresh()
    assert summary.counterparty_id == BUYER_ID
    assert summary.counterparty_name == "Xavier B."
    assert summary.listing_title == "MacBook Pro 2019"
    assert summary.unread_count == 1
    assert summary.last_message.content == "Hi! I'm interested in your MacBook Pro 2019."

    refreshed = []

    async def _on_read() -> None:
        refreshed.append(await seller_inbox.refresh())

    seller_view = ActiveThread(
        _thread_factory(SELLER_ID, message_repo, realtime_feed, on_read=_on_read)
    )
    seller_thread = await seller_view.select(summary.key)
    assert refreshed, "opening an unread thread refreshes the inbox"
    assert seller_inbox.unread_total == 0
    assert all(m.read for m in seller_thread.messages)

    box = ComposeBox(composer, SELLER_ID, summary.key, thread=seller_thread)
    box.draft = "Still available"
    reply = await box.submit()

    assert reply is not None
    assert box.draft == ""
    # Delivered to the buyer without a manual reload.
    assert buyer_thread.messages[-1].id == reply.id
    # The sender's own echo is not duplicated.
    assert [m.id for m in seller_thread.messages] == [first.id, reply.id]

    await buyer_view.clear()
    await seller_view.clear()
    assert realtime_feed.subscriber_count() == 0


@pytest.mark.asyncio
async def test_two_listings_make_two_conversations(
    message_repo, listing_repo, name_resolver, profiles, macbook_listing, iphone_listing
) -> None:
    composer = MessageComposer(message_repo, listing_repo)
    await composer.send(BUYER_ID, SELLER_ID, macbook_listing.id, "Does the MacBook have AppleCare?")
    await composer.send(SELLER_ID, BUYER_ID, iphone_listing.id, "The iPhone price dropped")

    buyer_inbox = _inbox(BUYER_ID, message_repo, name_resolver, listing_repo)
    conversations = await buyer_inbox.refresh()

    assert [c.listing_title for c in conversations] == ["iPhone 12", "MacBook Pro 2019"]
    assert {c.counterparty_name for c in conversations} == {"Yara S."}
    assert buyer_inbox.unread_total == 1


@pytest.mark.asyncio
async def test_new_user_sees_empty_inbox(
    message_repo, listing_repo, name_resolver
) -> None:
    inbox = _inbox(BUYER_ID, message_repo, name_resolver, listing_repo)

    assert await inbox.refresh() == []
    assert inbox.loaded is True
    assert inbox.error is None
