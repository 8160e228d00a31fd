# src/swap_market/models/__init__.py
"""SQLAlchemy models for the Swap Market messaging service."""

from .listing import Listing
from .message import Message
from .profile import Profile

__all__ = ["Listing", "Message", "Profile"]
