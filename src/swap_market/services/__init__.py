# src/swap_market/services/__init__.py
"""Business logic services for the Swap Market messaging subsystem."""

from .composer import ComposeBox, ListingNotFound, MessageComposer
from .conversations import ConversationAggregator, ConversationKey, ConversationSummary, Inbox
from .errors import (
    ComposeRejected,
    MarkReadError,
    MessagingError,
    RetrievalError,
    SendError,
    SignInRequired,
    SubscriptionClosed,
)
from .profiles import ProfileNameResolver
from .realtime import RealtimeFeed, get_realtime_feed
from .threads import ActiveThread, ConversationThread, ThreadLoader

__all__ = [
    "ActiveThread",
    "ComposeBox",
    "ComposeRejected",
    "ConversationAggregator",
    "ConversationKey",
    "ConversationSummary",
    "ConversationThread",
    "Inbox",
    "ListingNotFound",
    "MarkReadError",
    "MessageComposer",
    "MessagingError",
    "ProfileNameResolver",
    "RealtimeFeed",
    "RetrievalError",
    "SendError",
    "SignInRequired",
    "SubscriptionClosed",
    "ThreadLoader",
    "get_realtime_feed",
]
