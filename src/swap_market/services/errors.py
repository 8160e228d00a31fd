"""Exceptions raised by the messaging services.

Store failures surface as ``RetrievalError``, ``SendError`` or
``MarkReadError``. Client-side rejections raise ``ComposeRejected`` or
``SignInRequired`` before any store interaction happens.
"""

from __future__ import annotations


class MessagingError(RuntimeError):
    """Base exception for messaging failures."""


class RetrievalError(MessagingError):
    """Raised when conversations or a thread cannot be fetched."""


class SendError(MessagingError):
    """Raised when an outbound message could not be persisted."""


class MarkReadError(MessagingError):
    """Raised when unread messages could not be flagged as read."""


class SubscriptionClosed(MessagingError):
    """Raised when a released realtime subscription is used again."""


class SignInRequired(MessagingError):
    """Raised when an operation needs a signed-in user."""

    def __init__(self, message: str = "Please sign in to send messages") -> None:
        super().__init__(message)


class ComposeRejected(MessagingError):
    """Raised when an outbound message fails validation.

    Attributes:
        reason: Machine-readable rejection code.
    """

    EMPTY_CONTENT = "empty_content"
    TOO_LONG = "too_long"
    SELF_MESSAGE = "self_message"
    MISSING_RECIPIENT = "missing_recipient"
    MISSING_LISTING = "missing_listing"
    OWN_LISTING = "own_listing"

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason
