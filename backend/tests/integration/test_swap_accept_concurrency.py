"""
Concurrent acceptance against a file-backed SQLite database.

Every worker thread has its own engine connection and session, as request
handlers would. Whatever the interleaving, two conflicting acceptances
must resolve to exactly one accepted swap.
"""

from datetime import datetime, timedelta, timezone
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from nestswap.core.enums import SubscriptionStatus
from nestswap.core.exceptions import InvalidStateException, SwapConflictException
from nestswap.core.swap_lock import ListingLockRegistry
from nestswap.core.ulid_helper import generate_ulid
from nestswap.database import Base
from nestswap.models import Listing, SwapRequest, User
from nestswap.repositories.conflict_checker_repository import ConflictCheckerRepository
from nestswap.services.swap_service import SwapService

pytestmark = pytest.mark.integration

START = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(
    days=60
)


@pytest.fixture
def file_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'swaps.db'}",
        future=True,
        connect_args={"check_same_thread": False, "timeout": 15},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def Session(file_engine):
    return sessionmaker(bind=file_engine, autoflush=False, expire_on_commit=False, future=True)


@pytest.fixture
def world(Session) -> Dict[str, str]:
    """Three owners with one listing each; ids only, so threads load their own rows."""
    ids: Dict[str, str] = {}
    with Session() as session:
        for i in range(1, 4):
            user = User(
                id=generate_ulid(),
                name=f"Owner {i}",
                subscription_status=SubscriptionStatus.ACTIVE.value,
            )
            listing = Listing(
                id=generate_ulid(),
                owner_id=user.id,
                title=f"Listing {i}",
                property_type="caravan",
                city="Bude",
                country="UK",
                is_active=True,
            )
            session.add_all([user, listing])
            ids[f"u{i}"] = user.id
            ids[f"l{i}"] = listing.id
        session.commit()
    return ids


def _create(Session, registry, requester, requested, listing_a, listing_b, start, end) -> str:
    with Session() as session:
        service = SwapService(session, notification_sink=MagicMock(), lock_registry=registry)
        return service.create_swap(
            requester_id=requester,
            requested_user_id=requested,
            requester_listing_id=listing_a,
            requested_listing_id=listing_b,
            start_date=START + timedelta(days=start),
            end_date=START + timedelta(days=end),
        ).id


def _race(
    Session,
    registry,
    attempts: List[Tuple[str, str]],
    build_service: Optional[Callable[..., SwapService]] = None,
) -> List[object]:
    """Run accept_swap for each (swap_id, user_id) in its own thread, released together."""
    barrier = threading.Barrier(len(attempts))
    results: List[object] = [None] * len(attempts)

    def _worker(index: int, swap_id: str, user_id: str) -> None:
        with Session() as session:
            if build_service is None:
                service = SwapService(
                    session, notification_sink=MagicMock(), lock_registry=registry
                )
            else:
                service = build_service(session)
            barrier.wait()
            try:
                results[index] = service.accept_swap(swap_id, user_id).status
            except Exception as exc:  # collected for assertions
                results[index] = exc

    threads = [
        threading.Thread(target=_worker, args=(i, swap_id, user_id))
        for i, (swap_id, user_id) in enumerate(attempts)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return results


def _statuses(Session, swap_ids: List[str]) -> Dict[str, str]:
    with Session() as session:
        rows = session.query(SwapRequest).filter(SwapRequest.id.in_(swap_ids)).all()
        return {row.id: row.status for row in rows}


class TestConcurrentAcceptance:
    def test_two_conflicting_swaps_one_wins(self, Session, world):
        registry = ListingLockRegistry()
        s1 = _create(Session, registry, world["u1"], world["u2"], world["l1"], world["l2"], 1, 10)
        s2 = _create(Session, registry, world["u3"], world["u2"], world["l3"], world["l2"], 5, 15)

        results = _race(Session, registry, [(s1, world["u2"]), (s2, world["u2"])])

        accepted = [r for r in results if r == "accepted"]
        conflicts = [r for r in results if isinstance(r, SwapConflictException)]
        assert len(accepted) == 1, results
        assert len(conflicts) == 1, results
        assert sorted(_statuses(Session, [s1, s2]).values()) == ["accepted", "pending"]

    def test_same_swap_accepted_twice(self, Session, world):
        registry = ListingLockRegistry()
        s1 = _create(Session, registry, world["u1"], world["u2"], world["l1"], world["l2"], 1, 10)

        results = _race(Session, registry, [(s1, world["u2"])] * 4)

        assert results.count("accepted") == 1, results
        assert all(
            isinstance(r, InvalidStateException) for r in results if r != "accepted"
        ), results
        assert _statuses(Session, [s1]) == {s1: "accepted"}

    def test_non_conflicting_swaps_both_accept(self, Session, world):
        registry = ListingLockRegistry()
        s1 = _create(Session, registry, world["u1"], world["u2"], world["l1"], world["l2"], 1, 10)
        s2 = _create(Session, registry, world["u3"], world["u2"], world["l3"], world["l2"], 10, 15)

        results = _race(Session, registry, [(s1, world["u2"]), (s2, world["u2"])])

        assert results == ["accepted", "accepted"]
        assert registry.held_keys() == []


class _SlowOverlapRepository(ConflictCheckerRepository):
    """Holds the gap between the overlap check and the status write open."""

    def get_accepted_overlaps(self, *args, **kwargs):
        overlaps = super().get_accepted_overlaps(*args, **kwargs)
        time.sleep(0.2)
        return overlaps


def _separate_process_service(session) -> SwapService:
    # A fresh registry per worker: nothing in-process serialises them.
    return SwapService(
        session,
        notification_sink=MagicMock(),
        lock_registry=ListingLockRegistry(),
        conflict_repository=_SlowOverlapRepository(session),
    )


class TestAcceptanceAcrossProcesses:
    """Workers that share only the database file, as separate processes would."""

    def test_conflicting_swaps_one_wins_without_shared_mutex(self, Session, world):
        registry = ListingLockRegistry()
        s1 = _create(Session, registry, world["u1"], world["u2"], world["l1"], world["l2"], 1, 10)
        s2 = _create(Session, registry, world["u3"], world["u2"], world["l3"], world["l2"], 5, 15)

        results = _race(
            Session,
            registry,
            [(s1, world["u2"]), (s2, world["u2"])],
            build_service=_separate_process_service,
        )

        accepted = [r for r in results if r == "accepted"]
        conflicts = [r for r in results if isinstance(r, SwapConflictException)]
        assert len(accepted) == 1, results
        assert len(conflicts) == 1, results
        assert sorted(_statuses(Session, [s1, s2]).values()) == ["accepted", "pending"]

    def test_same_swap_accepted_twice_without_shared_mutex(self, Session, world):
        registry = ListingLockRegistry()
        s1 = _create(Session, registry, world["u1"], world["u2"], world["l1"], world["l2"], 1, 10)

        results = _race(
            Session,
            registry,
            [(s1, world["u2"])] * 2,
            build_service=_separate_process_service,
        )

        assert results.count("accepted") == 1, results
        assert all(
            isinstance(r, InvalidStateException) for r in results if r != "accepted"
        ), results
        assert _statuses(Session, [s1]) == {s1: "accepted"}
