"""Shared API dependencies for authentication and service wiring."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from swap_market.core.security import JWTError, decode_access_token
from swap_market.db.session import get_db
from swap_market.repositories import ListingRepository, MessageRepository, ProfileRepository
from swap_market.services.profiles import NameCache, get_name_cache
from swap_market.services.realtime import RealtimeFeed, get_realtime_feed

# Missing credentials are allowed through; endpoints decide whether sign-in is required.
bearer_scheme = HTTPBearer(auto_error=False)

SIGN_IN_REQUIRED = "Please sign in to send messages"

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_realtime_feed_dep() -> RealtimeFeed:
    """Return the shared realtime feed."""
    return get_realtime_feed()


def get_name_cache_dep() -> NameCache:
    """Return the session-scoped display name cache."""
    return get_name_cache()


FeedDep = Annotated[RealtimeFeed, Depends(get_realtime_feed_dep)]
NameCacheDep = Annotated[NameCache, Depends(get_name_cache_dep)]


def user_id_from_token(token: str) -> str:
    """Decode a bearer token into a user identifier.

    Raises:
        HTTPException: If the token cannot be validated.
    """
    try:
        return decode_access_token(token)
    except JWTError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err


def get_optional_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str | None:
    """Return the signed-in user's id, or None for anonymous callers."""
    if credentials is None:
        return None
    return user_id_from_token(credentials.credentials)


def get_current_user_id(
    user_id: Annotated[str | None, Depends(get_optional_user_id)],
) -> str:
    """Return the signed-in user's id or reject the request."""
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=SIGN_IN_REQUIRED,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


OptionalUserIdDep = Annotated[str | None, Depends(get_optional_user_id)]
CurrentUserIdDep = Annotated[str, Depends(get_current_user_id)]


def get_message_repository(db: SessionDep, feed: FeedDep) -> MessageRepository:
    return MessageRepository(db, feed)


def get_listing_repository(db: SessionDep) -> ListingRepository:
    return ListingRepository(db)


def get_profile_repository(db: SessionDep) -> ProfileRepository:
    return ProfileRepository(db)


MessageRepoDep = Annotated[MessageRepository, Depends(get_message_repository)]
ListingRepoDep = Annotated[ListingRepository, Depends(get_listing_repository)]
ProfileRepoDep = Annotated[ProfileRepository, Depends(get_profile_repository)]
