"""
Shared fixtures for the swap engine tests.

Each test gets its own in-memory SQLite database (StaticPool, so every
thread in a TestClient request sees the same connection). Tests that need
real concurrent connections build a file-backed engine themselves.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, Optional
from unittest.mock import MagicMock

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from nestswap.api.dependencies import get_db, get_notification_sink
from nestswap.core.enums import SubscriptionStatus
from nestswap.core.swap_lock import ListingLockRegistry
from nestswap.core.ulid_helper import generate_ulid
from nestswap.database import Base
from nestswap.main import create_app

# Import models so Base.metadata is populated for create_all.
from nestswap.models import Listing, SwapRequest, User
from nestswap.services.swap_service import SwapService


_BASE_DAY = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(
    days=30
)


def day(n: int) -> datetime:
    """
    Midnight UTC n days after a fixed point a month from now.

    Scenario dates ("days 1-10") are expressed as day(1), day(10).
    """
    return _BASE_DAY + timedelta(days=n)


@pytest.fixture
def db_engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine: Engine) -> sessionmaker:
    return sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False, future=True)


@pytest.fixture
def db(session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    def _make(
        name: str = "Test User",
        subscription_status: str = SubscriptionStatus.ACTIVE.value,
        user_id: Optional[str] = None,
    ) -> User:
        user = User(
            id=user_id or generate_ulid(),
            name=name,
            subscription_status=subscription_status,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_listing(db: Session) -> Callable[..., Listing]:
    def _make(
        owner: User,
        title: str = "Lakeside Cabin",
        is_active: bool = True,
        property_type: str = "cabin",
    ) -> Listing:
        listing = Listing(
            id=generate_ulid(),
            owner_id=owner.id,
            title=title,
            property_type=property_type,
            city="Keswick",
            country="UK",
            is_active=is_active,
        )
        db.add(listing)
        db.commit()
        return listing

    return _make


@pytest.fixture
def notifier() -> MagicMock:
    return MagicMock()


@pytest.fixture
def lock_registry() -> ListingLockRegistry:
    return ListingLockRegistry()


@pytest.fixture
def swap_service(
    db: Session, notifier: MagicMock, lock_registry: ListingLockRegistry
) -> SwapService:
    return SwapService(db, notification_sink=notifier, lock_registry=lock_registry)


@pytest.fixture
def owners(make_user, make_listing):
    """
    Four users, each owning one listing: L1..L4.

    Returns a dict with users u1..u4 and listings l1..l4.
    """
    result = {}
    for i in range(1, 5):
        user = make_user(name=f"Owner {i}")
        result[f"u{i}"] = user
        result[f"l{i}"] = make_listing(user, title=f"Listing {i}")
    return result


@pytest.fixture
def make_swap(swap_service: SwapService) -> Callable[..., SwapRequest]:
    """Create a pending swap from listing_a's owner to listing_b's owner."""

    def _make(
        listing_a: Listing,
        listing_b: Listing,
        start_day: int = 1,
        end_day: int = 10,
        notes: Optional[str] = None,
    ) -> SwapRequest:
        return swap_service.create_swap(
            requester_id=listing_a.owner_id,
            requested_user_id=listing_b.owner_id,
            requester_listing_id=listing_a.id,
            requested_listing_id=listing_b.id,
            start_date=day(start_day),
            end_date=day(end_day),
            notes=notes,
        )

    return _make


@pytest.fixture
def client(db: Session, notifier: MagicMock) -> Iterator[TestClient]:
    app = create_app()

    def _override_db() -> Iterator[Session]:
        yield db

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[get_notification_sink] = lambda: notifier
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def at_day() -> Callable[[int], datetime]:
    return day
