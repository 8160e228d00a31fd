"""Pydantic schemas for the Swap Market API."""

from .conversation import ConversationSummaryOut, RealtimeCommand, RealtimeEnvelope, ThreadOut
from .message import ListingRead, MessageCreate, MessageRead

__all__ = [
    "ConversationSummaryOut",
    "ListingRead",
    "MessageCreate",
    "MessageRead",
    "RealtimeCommand",
    "RealtimeEnvelope",
    "ThreadOut",
]
