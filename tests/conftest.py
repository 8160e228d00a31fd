# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import UTC, datetime, timedelta
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from swap_market.api.v1 import dependencies as api_dependencies
from swap_market.core.security import create_access_token
from swap_market.db.session import Base, enable_sqlite_foreign_keys
from swap_market.db.session import get_db as app_get_session
from swap_market.main import app as fastapi_app
from swap_market.models import Listing, Message, Profile
from swap_market.repositories import ListingRepository, MessageRepository, ProfileRepository
from swap_market.schemas.message import MessageRead
from swap_market.services.profiles import NameCache, ProfileNameResolver
from swap_market.services.realtime import RealtimeFeed

TEST_DB_URL = "sqlite://"

BUYER_ID = "3f6c1a52-9f0e-4c1b-8d53-6b0f2d8e11a1"
SELLER_ID = "a81d0c37-52b4-4e9e-9a0f-0c4f2f5d7b22"
OTHER_BUYER_ID = "c2b7e6f4-1d3a-4f8e-b5c9-7e2a9d0f3c33"

BASE_TIME = datetime(2026, 1, 5, 9, 0, tzinfo=UTC)
_MESSAGE_CLOCK = count(1)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    session.begin_nested()

    @event.listens_for(session, "after_transaction_end")
    def restart_savepoint(sess: Session, trans) -> None:  # pragma: no cover - SQLAlchemy internals
        if trans.nested and not getattr(trans._parent, "nested", False):
            session.begin_nested()

    try:
        yield session
    finally:
        event.remove(session, "after_transaction_end", restart_savepoint)
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture(autouse=True)
def realtime_feed(app: FastAPI) -> Iterator[RealtimeFeed]:
    """Give every test its own realtime feed, shared by services and the API."""
    feed = RealtimeFeed()
    app.dependency_overrides[api_dependencies.get_realtime_feed_dep] = lambda: feed
    try:
        yield feed
    finally:
        app.dependency_overrides.pop(api_dependencies.get_realtime_feed_dep, None)


@pytest.fixture(autouse=True)
def name_cache(app: FastAPI) -> Iterator[NameCache]:
    """Start every test with an empty display name cache."""
    cache = NameCache()
    app.dependency_overrides[api_dependencies.get_name_cache_dep] = lambda: cache
    try:
        yield cache
    finally:
        app.dependency_overrides.pop(api_dependencies.get_name_cache_dep, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


def auth_headers(user_id: str) -> dict[str, str]:
    """Return authorization headers for ``user_id``."""
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture()
def buyer_headers() -> dict[str, str]:
    return auth_headers(BUYER_ID)


@pytest.fixture()
def seller_headers() -> dict[str, str]:
    return auth_headers(SELLER_ID)


@pytest.fixture()
def profiles(db_session: Session) -> dict[str, Profile]:
    """Persist profiles for the buyer and the seller (the other buyer has none)."""
    rows = {
        BUYER_ID: Profile(id=BUYER_ID, full_name="Xavier Quinn Buyer"),
        SELLER_ID: Profile(id=SELLER_ID, full_name="Yara Seller"),
    }
    db_session.add_all(rows.values())
    db_session.flush()
    return rows


@pytest.fixture()
def macbook_listing(db_session: Session) -> Listing:
    listing = Listing(title="MacBook Pro 2019", user_id=SELLER_ID)
    db_session.add(listing)
    db_session.flush()
    db_session.refresh(listing)
    return listing


@pytest.fixture()
def iphone_listing(db_session: Session) -> Listing:
    listing = Listing(title="iPhone 12", user_id=SELLER_ID)
    db_session.add(listing)
    db_session.flush()
    db_session.refresh(listing)
    return listing


@pytest.fixture()
def make_message(db_session: Session) -> Callable[..., Message]:
    """Return a factory that persists messages with increasing timestamps."""

    def _make(
        sender_id: str,
        recipient_id: str,
        listing_id: str,
        content: str = "Is this still available?",
        *,
        read: bool = False,
        created_at: datetime | None = None,
    ) -> Message:
        message = Message(
            content=content,
            sender_id=sender_id,
            recipient_id=recipient_id,
            listing_id=listing_id,
            read=read,
            created_at=created_at or BASE_TIME + timedelta(minutes=next(_MESSAGE_CLOCK)),
        )
        db_session.add(message)
        db_session.flush()
        db_session.refresh(message)
        return message

    return _make


@pytest.fixture()
def message_repo(db_session: Session, realtime_feed: RealtimeFeed) -> MessageRepository:
    return MessageRepository(db_session, realtime_feed)


@pytest.fixture()
def listing_repo(db_session: Session) -> ListingRepository:
    return ListingRepository(db_session)


@pytest.fixture()
def name_resolver(db_session: Session, name_cache: NameCache) -> ProfileNameResolver:
    return ProfileNameResolver(ProfileRepository(db_session), name_cache)


def message_read(
    message_id: int,
    sender_id: str,
    recipient_id: str,
    listing_id: str = "listing-1",
    *,
    minutes: int | None = None,
    read: bool = False,
    content: str | None = None,
) -> MessageRead:
    """Build an in-memory message snapshot for service tests."""
    return MessageRead(
        id=message_id,
        content=content or f"message {message_id}",
        sender_id=sender_id,
        recipient_id=recipient_id,
        listing_id=listing_id,
        created_at=BASE_TIME + timedelta(minutes=message_id if minutes is None else minutes),
        read=read,
    )
