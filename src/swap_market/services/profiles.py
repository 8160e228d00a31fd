"""Display-name resolution for conversation participants.

Names are looked up lazily and memoized for the rest of the session. The
cache has no invalidation; a renamed user keeps the old label until the
cache is cleared.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from swap_market.core.settings import settings
from swap_market.services.errors import RetrievalError

if TYPE_CHECKING:
    from swap_market.repositories.profile_repo import ProfileRepository

logger = logging.getLogger(__name__)


def fallback_name(user_id: str | None) -> str:
    """Return the stable label used when no full name is on file."""
    if not user_id:
        return settings.anonymous_display_name
    return f"{settings.name_fallback_prefix} {user_id[: settings.name_fallback_id_chars]}"


def format_display_name(full_name: str | None, user_id: str | None = None) -> str:
    """Format a name as first name plus last initial.

    >>> format_display_name("Jane Marie Doe")
    'Jane D.'
    >>> format_display_name("Cher")
    'Cher'
    """
    tokens = (full_name or "").split()
    if not tokens:
        return fallback_name(user_id)
    if len(tokens) == 1:
        return tokens[0]
    return f"{tokens[0]} {tokens[-1][0].upper()}."


class NameCache:
    """Session-scoped memo of resolved display names."""

    def __init__(self) -> None:
        self._names: dict[str, str] = {}

    def get(self, user_id: str) -> str | None:
        return self._names.get(user_id)

    def set(self, user_id: str, name: str) -> None:
        self._names[user_id] = name

    def clear(self) -> None:
        self._names.clear()

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._names

    def __len__(self) -> int:
        return len(self._names)


_session_names = NameCache()


def get_name_cache() -> NameCache:
    """Return the process-wide display name cache."""
    return _session_names


class ProfileNameResolver:
    """Resolve user identifiers to display names with memoization."""

    def __init__(self, profiles: ProfileRepository, cache: NameCache | None = None) -> None:
        self.profiles = profiles
        self.cache = cache if cache is not None else get_name_cache()

    async def resolve(self, user_id: str) -> str:
        """Return the display name for ``user_id``.

        A failed lookup returns the fallback label without caching it, so the
        next view tries again.
        """
        cached = self.cache.get(user_id)
        if cached is not None:
            return cached
        try:
            full_name = await self.profiles.get_full_name(user_id)
        except RetrievalError:
            logger.warning("Profile lookup failed for %s; using fallback name", user_id)
            return fallback_name(user_id)
        name = format_display_name(full_name, user_id)
        self.cache.set(user_id, name)
        return name

    async def resolve_many(self, user_ids: Iterable[str]) -> dict[str, str]:
        """Resolve several identifiers, looking each one up at most once."""
        names: dict[str, str] = {}
        for user_id in dict.fromkeys(user_ids):
            names[user_id] = await self.resolve(user_id)
        return names
