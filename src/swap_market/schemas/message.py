"""Message-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from swap_market.db.time import ensure_utc


class MessageCreate(BaseModel):
    """Schema for sending a new message about a listing."""

    recipient_id: str = Field(..., description="Identifier of the user receiving the message")
    listing_id: str = Field(..., description="Listing the message is about")
    content: str = Field(..., description="Plain-text message body")


class MessageRead(BaseModel):
    """Immutable snapshot of a stored message row."""

    id: int
    content: str
    sender_id: str
    recipient_id: str
    listing_id: str
    created_at: datetime
    read: bool = False

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @field_validator("created_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def counterparty_of(self, user_id: str) -> str:
        """Return the participant on the other side from ``user_id``."""
        return self.recipient_id if self.sender_id == user_id else self.sender_id

    def is_between(self, user_a: str, user_b: str) -> bool:
        """Return True when the message was exchanged by exactly these two users."""
        return {self.sender_id, self.recipient_id} == {user_a, user_b}

    def is_unread_for(self, user_id: str) -> bool:
        """Return True when ``user_id`` received the message and has not read it."""
        return self.recipient_id == user_id and not self.read


class ListingRead(BaseModel):
    """Listing fields the messaging service relies on."""

    id: str
    title: str
    user_id: str

    model_config = ConfigDict(from_attributes=True, frozen=True)
