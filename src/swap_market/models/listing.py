# src/swap_market/models/listing.py
"""Listing rows referenced by messages."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from swap_market.db.session import Base
from swap_market.db.time import utcnow


def _new_listing_id() -> str:
    return str(uuid.uuid4())


class Listing(Base):
    """An item offered for exchange. Read-only for the messaging service."""

    __tablename__ = "listings"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_listing_id)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
