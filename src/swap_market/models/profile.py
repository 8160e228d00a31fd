# src/swap_market/models/profile.py
"""Public profile data for authenticated users."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from swap_market.db.session import Base


class Profile(Base):
    """Profile keyed by the authenticated user identifier."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    full_name: Mapped[str | None] = mapped_column(Text, nullable=True)
