"""Conversation and thread response schemas."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from .message import MessageRead


class ConversationSummaryOut(BaseModel):
    """One row of the signed-in user's conversation list."""

    key: str = Field(..., description="Conversation key in 'counterparty:listing' form")
    counterparty_id: str
    counterparty_name: str
    listing_id: str
    listing_title: str | None = None
    last_message: MessageRead
    unread_count: int


class ThreadOut(BaseModel):
    """Chronological history of one conversation."""

    key: str
    counterparty_id: str
    counterparty_name: str
    listing_id: str
    listing_title: str | None = None
    messages: list[MessageRead]


class RealtimeEnvelope(BaseModel):
    """Server to client websocket frame."""

    type: str  # thread.loaded | message.created | pong | error
    data: dict[str, Any] = {}


class RealtimeCommand(BaseModel):
    """Client to server websocket frame."""

    type: str  # ping | reload
    data: dict[str, Any] = {}
