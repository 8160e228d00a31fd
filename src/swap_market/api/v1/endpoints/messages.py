"""Messaging endpoints for the Swap Market API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect, status

from swap_market.api.v1.dependencies import (
    SIGN_IN_REQUIRED,
    CurrentUserIdDep,
    FeedDep,
    ListingRepoDep,
    MessageRepoDep,
    NameCacheDep,
    OptionalUserIdDep,
    ProfileRepoDep,
    SessionDep,
)
from swap_market.core.security import JWTError, decode_access_token
from swap_market.core.settings import settings
from swap_market.repositories import ListingRepository, MessageRepository, ProfileRepository
from swap_market.schemas.conversation import (
    ConversationSummaryOut,
    RealtimeCommand,
    RealtimeEnvelope,
    ThreadOut,
)
from swap_market.schemas.message import MessageCreate, MessageRead
from swap_market.services.composer import SEND_FAILED_MESSAGE, ListingNotFound, MessageComposer
from swap_market.services.conversations import (
    LOAD_FAILED_MESSAGE,
    ConversationAggregator,
    ConversationKey,
    ConversationSummary,
)
from swap_market.services.errors import ComposeRejected, RetrievalError, SendError, SignInRequired
from swap_market.services.profiles import ProfileNameResolver
from swap_market.services.threads import ConversationThread, ThreadLoader

router = APIRouter(prefix="/messages", tags=["messages"])

logger = logging.getLogger(__name__)


def _summary_out(summary: ConversationSummary) -> ConversationSummaryOut:
    return ConversationSummaryOut(
        key=str(summary.key),
        counterparty_id=summary.counterparty_id,
        counterparty_name=summary.counterparty_name,
        listing_id=summary.listing_id,
        listing_title=summary.listing_title,
        last_message=summary.last_message,
        unread_count=summary.unread_count,
    )


def _thread_out(
    thread: ConversationThread, counterparty_name: str, listing_title: str | None
) -> ThreadOut:
    return ThreadOut(
        key=str(thread.key),
        counterparty_id=thread.key.counterparty_id,
        counterparty_name=counterparty_name,
        listing_id=thread.key.listing_id,
        listing_title=listing_title,
        messages=thread.messages,
    )


async def _listing_title(listings: ListingRepository, listing_id: str) -> str | None:
    try:
        listing = await listings.get(listing_id)
    except RetrievalError:
        logger.warning("Listing %s unavailable for thread header", listing_id, exc_info=True)
        return None
    return listing.title if listing else None


def _envelope(kind: str, **data: Any) -> dict[str, Any]:
    return RealtimeEnvelope(type=kind, data=data).model_dump(mode="json")


class _StreamSender:
    """Serialize outbound frames from the command loop and the forwarder task."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._lock = asyncio.Lock()

    async def send(self, kind: str, **data: Any) -> None:
        async with self._lock:
            await self._websocket.send_json(_envelope(kind, **data))


@router.get("/conversations", response_model=list[ConversationSummaryOut])
async def list_conversations(
    user_id: OptionalUserIdDep,
    messages: MessageRepoDep,
    listings: ListingRepoDep,
    profiles: ProfileRepoDep,
    names: NameCacheDep,
) -> list[ConversationSummaryOut]:
    """List the caller's conversations, most recently active first.

    Anonymous callers get an empty list.
    """
    aggregator = ConversationAggregator(messages, ProfileNameResolver(profiles, names), listings)
    try:
        summaries = await aggregator.load(user_id)
    except RetrievalError as exc:
        logger.error("Conversation list failed for %s", user_id, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=LOAD_FAILED_MESSAGE,
        ) from exc
    await aggregator.resolve_names(summaries)
    return [_summary_out(summary) for summary in summaries]


@router.get("/threads/{counterparty_id}/{listing_id}", response_model=ThreadOut)
async def get_thread(
    counterparty_id: str,
    listing_id: str,
    user_id: CurrentUserIdDep,
    messages: MessageRepoDep,
    listings: ListingRepoDep,
    profiles: ProfileRepoDep,
    names: NameCacheDep,
) -> ThreadOut:
    """Return one conversation's history and mark the caller's unread messages read."""
    key = ConversationKey(counterparty_id=counterparty_id, listing_id=listing_id)
    thread = ConversationThread(
        loader=ThreadLoader(messages),
        feed=None,
        current_user_id=user_id,
        key=key,
    )
    await thread.open(live=False)
    if thread.error:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=thread.error,
        )
    name = await ProfileNameResolver(profiles, names).resolve(counterparty_id)
    return _thread_out(thread, name, await _listing_title(listings, listing_id))


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=MessageRead)
async def send_message(
    payload: MessageCreate,
    user_id: OptionalUserIdDep,
    messages: MessageRepoDep,
    listings: ListingRepoDep,
) -> MessageRead:
    """Send a message to another user about a listing."""
    composer = MessageComposer(messages, listings)
    return await _run_send(
        composer.send(user_id, payload.recipient_id, payload.listing_id, payload.content)
    )


@router.post(
    "/listings/{listing_id}/interest",
    status_code=status.HTTP_201_CREATED,
    response_model=MessageRead,
)
async def express_interest(
    listing_id: str,
    user_id: OptionalUserIdDep,
    messages: MessageRepoDep,
    listings: ListingRepoDep,
) -> MessageRead:
    """Send the default "I'm interested" message to the listing's owner."""
    composer = MessageComposer(messages, listings)
    return await _run_send(composer.start_listing_chat(user_id, listing_id))


async def _run_send(pending: Any) -> MessageRead:
    """Await a composer call and translate its failures into HTTP errors."""
    try:
        return await pending
    except SignInRequired as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    except ComposeRejected as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"reason": exc.reason, "message": str(exc)},
        ) from exc
    except ListingNotFound as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Listing not found",
        ) from exc
    except SendError as exc:
        logger.error("Message send failed", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=SEND_FAILED_MESSAGE,
        ) from exc


@router.websocket("/stream")
async def stream_thread(
    websocket: WebSocket,
    db: SessionDep,
    feed: FeedDep,
    names: NameCacheDep,
    counterparty_id: str = Query(...),
    listing_id: str = Query(...),
    token: str | None = Query(None),
) -> None:
    """Open a conversation and push new messages as they are inserted.

    Frames sent: ``thread.loaded`` with the history, then ``message.created``
    for each realtime arrival. The client may send ``ping`` or ``reload``.
    """
    try:
        user_id = decode_access_token(token) if token else None
    except JWTError:
        user_id = None
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=SIGN_IN_REQUIRED)
        return

    await websocket.accept()
    queue: asyncio.Queue[MessageRead] = asyncio.Queue(maxsize=settings.realtime_queue_size)

    def _enqueue(message: MessageRead) -> None:
        try:
            queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Realtime buffer full; dropping message %s for %s", message.id, user_id)

    key = ConversationKey(counterparty_id=counterparty_id, listing_id=listing_id)
    thread = ConversationThread(
        loader=ThreadLoader(MessageRepository(db, feed)),
        feed=feed,
        current_user_id=user_id,
        key=key,
        on_message=_enqueue,
    )
    resolver = ProfileNameResolver(ProfileRepository(db), names)
    listings = ListingRepository(db)

    sender = _StreamSender(websocket)

    async def _send_loaded() -> None:
        if thread.error:
            await sender.send("error", message=thread.error)
            return
        out = _thread_out(
            thread,
            await resolver.resolve(counterparty_id),
            await _listing_title(listings, listing_id),
        )
        await sender.send("thread.loaded", **out.model_dump(mode="json"))

    async def _forward() -> None:
        while True:
            message = await queue.get()
            await sender.send("message.created", message=message.model_dump(mode="json"))

    forwarder: asyncio.Task[None] | None = None
    try:
        await thread.open()
        await _send_loaded()
        forwarder = asyncio.create_task(_forward())
        while True:
            raw = await websocket.receive_text()
            try:
                command = RealtimeCommand.model_validate_json(raw)
            except ValueError:
                await sender.send("error", message="Malformed command")
                continue
            if command.type == "ping":
                await sender.send("pong")
            elif command.type == "reload":
                await thread.reload()
                await _send_loaded()
            else:
                await sender.send("error", message=f"Unknown command {command.type!r}")
    except WebSocketDisconnect:
        logger.debug("Stream for %s closed by client", key)
    finally:
        await thread.close()
        if forwarder is not None:
            forwarder.cancel()
            try:
                await forwarder
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.warning("Realtime forwarder for %s failed", key, exc_info=True)
