"""Data store access for messages, listings and profiles."""

from .listing_repo import ListingRepository
from .message_repo import MessageRepository
from .profile_repo import ProfileRepository

__all__ = ["ListingRepository", "MessageRepository", "ProfileRepository"]
