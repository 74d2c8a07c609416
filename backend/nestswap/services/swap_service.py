# backend/nestswap/services/swap_service.py
"""
Swap Service for the NestSwap swap engine

Handles the swap request lifecycle:
- Validating and creating swap requests
- Reading swaps for the two parties
- Accepting, declining and cancelling swaps
- Telling both parties what happened

This is the only component that writes the swaps table. Accepting a
swap is an exclusive claim on both listings for the window, so it runs
under the listing mutex and row locks; see accept_swap.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    SwapConflictException,
    ValidationException,
)
from ..core.swap_lock import ListingLockRegistry, get_listing_lock_registry
from ..core.timezone_utils import ensure_utc, utc_now
from ..database.session_utils import supports_row_locks
from ..models.notification import NotificationType
from ..models.swap import SwapRequest, SwapStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.conflict_checker_repository import ConflictCheckerRepository
from ..repositories.swap_repository import DIRECTION_ALL, SwapRepository
from .base import BaseService
from .conflict_checker import SwapConflictChecker
from .listing_directory import ListingDirectory, ListingInfo, SqlListingDirectory
from .notification_service import NotificationService, NotificationSink
from .swap_state_machine import SwapActor, SwapStateMachine

logger = logging.getLogger(__name__)


@dataclass
class SwapCreation:
    """A newly created swap plus the accepted swaps it currently competes with."""

    swap: SwapRequest
    conflicts: List[SwapRequest] = field(default_factory=list)


class SwapService(BaseService):
    """
    Service layer for swap request operations.

    Collaborators (listing directory, notification sink, lock registry)
    are injectable so tests can substitute doubles.
    """

    def __init__(
        self,
        db: Session,
        notification_sink: Optional[NotificationSink] = None,
        listing_directory: Optional[ListingDirectory] = None,
        repository: Optional[SwapRepository] = None,
        conflict_repository: Optional[ConflictCheckerRepository] = None,
        lock_registry: Optional[ListingLockRegistry] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize swap service.

        Args:
            db: Database session
            notification_sink: Where swap events are reported (fire-and-forget)
            listing_directory: Source of listing ownership and active flags
            repository: Optional SwapRepository instance
            conflict_repository: Optional ConflictCheckerRepository instance
            lock_registry: Optional listing mutex registry
            clock: Optional callable returning the current UTC time
        """
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_swap_repository(db)
        self.conflict_repository = (
            conflict_repository or RepositoryFactory.create_conflict_checker_repository(db)
        )
        self.conflict_checker = SwapConflictChecker(db, self.conflict_repository)
        self.listing_directory = listing_directory or SqlListingDirectory(db)
        self.notification_sink = notification_sink or NotificationService()
        self.lock_registry = lock_registry or get_listing_lock_registry()
        self._clock = clock or utc_now

    def _now(self) -> datetime:
        return ensure_utc(self._clock())

    # Creation

    def _validate_request(
        self,
        requester_id: str,
        requested_user_id: str,
        requester_listing_id: str,
        requested_listing_id: str,
        start_date: datetime,
        end_date: datetime,
        notes: Optional[str],
    ) -> Tuple[datetime, datetime, Optional[str]]:
        """
        Check the request's own fields.

        Returns:
            UTC start, UTC end and the normalised notes

        Raises:
            ValidationException: with a distinct reason per rule
        """
        if requester_id == requested_user_id:
            raise ValidationException("You cannot request a swap with yourself", reason="self_swap")
        if requester_listing_id == requested_listing_id:
            raise ValidationException(
                "A listing cannot be swapped with itself", reason="same_listing"
            )

        start = ensure_utc(start_date)
        end = ensure_utc(end_date)
        if end <= start:
            raise ValidationException(
                "End date must be after start date", reason="end_before_start"
            )

        min_days = settings.swap_min_duration_days
        if end - start < timedelta(days=min_days):
            raise ValidationException(
                f"A swap must last at least {min_days} day{'s' if min_days != 1 else ''}",
                reason="duration_too_short",
                details={"min_days": min_days},
            )

        if start <= self._now():
            raise ValidationException(
                "Start date must be in the future", reason="start_not_in_future"
            )

        if notes is not None:
            notes = notes.strip() or None
        max_notes = settings.swap_notes_max_length
        if notes is not None and len(notes) > max_notes:
            raise ValidationException(
                f"Notes must be at most {max_notes} characters",
                reason="notes_too_long",
                details={"max_length": max_notes},
            )

        return start, end, notes

    def _require_listing(self, listing_id: str) -> ListingInfo:
        listing = self.listing_directory.get_listing(listing_id)
        if listing is None:
            raise NotFoundException(
                "Listing not found", code="LISTING_NOT_FOUND", details={"listing_id": listing_id}
            )
        return listing

    def _require_owned_active_listing(self, listing_id: str, owner_id: str, role: str) -> ListingInfo:
        listing = self._require_listing(listing_id)
        if listing.owner_id != owner_id:
            if role == "requester":
                message = "You can only offer a listing you own"
            else:
                message = "The requested listing does not belong to the requested user"
            raise ForbiddenException(
                message, details={"listing_id": listing_id, "reason": "listing_not_owned"}
            )
        if not listing.is_active:
            raise ValidationException(
                "This listing is not currently available for swaps",
                reason="listing_inactive",
                details={"listing_id": listing_id},
            )
        return listing

    @BaseService.measure_operation("create_swap")
    def create_swap_with_conflicts(
        self,
        requester_id: str,
        requested_user_id: str,
        requester_listing_id: str,
        requested_listing_id: str,
        start_date: datetime,
        end_date: datetime,
        notes: Optional[str] = None,
    ) -> SwapCreation:
        """
        Create a pending swap and report the accepted swaps it overlaps.

        Existing conflicts do not block creation; competing requests are
        resolved when one of them is accepted.

        Raises:
            ValidationException: if a field rule fails
            NotFoundException: if either listing does not exist
            ForbiddenException: if a listing belongs to the wrong user
        """
        self.log_operation(
            "create_swap",
            requester_id=requester_id,
            requested_user_id=requested_user_id,
            requester_listing_id=requester_listing_id,
            requested_listing_id=requested_listing_id,
        )

        start, end, notes = self._validate_request(
            requester_id,
            requested_user_id,
            requester_listing_id,
            requested_listing_id,
            start_date,
            end_date,
            notes,
        )
        self._require_owned_active_listing(requester_listing_id, requester_id, "requester")
        requested_listing = self._require_owned_active_listing(
            requested_listing_id, requested_user_id, "requested_user"
        )

        with self.transaction():
            conflicts = self.conflict_checker.find_conflicts(
                requester_listing_id, requested_listing_id, start, end
            )
            now = self._now()
            swap = self.repository.create(
                requester_id=requester_id,
                requested_user_id=requested_user_id,
                requester_listing_id=requester_listing_id,
                requested_listing_id=requested_listing_id,
                start_date=start,
                end_date=end,
                status=SwapStatus.PENDING.value,
                notes=notes,
                created_at=now,
                updated_at=now,
            )
            swap_id = swap.id

        if conflicts:
            self.logger.info(
                f"Swap {swap_id} created alongside {len(conflicts)} accepted overlap(s)",
                extra={"swap_id": swap_id, "conflicting_swap_ids": [c.id for c in conflicts]},
            )

        created = self.repository.reload(swap_id) or swap
        self._notify(
            requested_user_id,
            NotificationType.SWAP_REQUEST_RECEIVED,
            created,
            listing_title=requested_listing.title,
        )
        return SwapCreation(swap=created, conflicts=conflicts)

    def create_swap(
        self,
        requester_id: str,
        requested_user_id: str,
        requester_listing_id: str,
        requested_listing_id: str,
        start_date: datetime,
        end_date: datetime,
        notes: Optional[str] = None,
    ) -> SwapRequest:
        """Create a pending swap request. See create_swap_with_conflicts."""
        return self.create_swap_with_conflicts(
            requester_id,
            requested_user_id,
            requester_listing_id,
            requested_listing_id,
            start_date,
            end_date,
            notes,
        ).swap

    # Reads

    def get_swap(self, swap_id: str) -> SwapRequest:
        """
        Raises:
            NotFoundException: if the swap does not exist
        """
        swap = self.repository.get_by_id(swap_id)
        if swap is None:
            raise NotFoundException(
                "Swap not found", code="SWAP_NOT_FOUND", details={"swap_id": swap_id}
            )
        return swap

    def get_swap_for_user(self, swap_id: str, user_id: str) -> SwapRequest:
        """
        Get a swap the user is a party to.

        Non-parties get NotFound so a swap's existence is not revealed.
        """
        swap = self.get_swap(swap_id)
        if not swap.is_party(user_id):
            raise NotFoundException(
                "Swap not found", code="SWAP_NOT_FOUND", details={"swap_id": swap_id}
            )
        return swap

    @BaseService.measure_operation("list_swaps_for_user")
    def list_swaps_for_user(
        self,
        user_id: str,
        direction: str = DIRECTION_ALL,
        status: Optional[SwapStatus] = None,
    ) -> List[SwapRequest]:
        """Swaps where the user is requester or requested user, newest first."""
        return self.repository.list_for_user(user_id, direction=direction, status=status)

    def check_conflicts(
        self,
        listing_a: str,
        listing_b: str,
        start_date: datetime,
        end_date: datetime,
        exclude_swap_id: Optional[str] = None,
    ) -> List[SwapRequest]:
        """
        Advisory lookup of accepted swaps overlapping a candidate swap.

        Raises:
            ValidationException: if the window is empty or reversed
        """
        start = ensure_utc(start_date)
        end = ensure_utc(end_date)
        if end <= start:
            raise ValidationException(
                "End date must be after start date", reason="end_before_start"
            )
        return self.conflict_checker.find_conflicts(
            listing_a, listing_b, start, end, exclude_swap_id=exclude_swap_id
        )

    # Transitions

    def transition_swap(self, swap_id: str, acting_user_id: str, target_status: Any) -> SwapRequest:
        """
        Move a swap to accepted, declined or cancelled.

        Raises:
            ValidationException: if target_status is not a transition target
            NotFoundException: if the swap does not exist
            ForbiddenException: if the acting user may not make this transition
            InvalidStateException: if the swap is no longer pending
            SwapConflictException: if accepting would double-book a listing
        """
        value = target_status.value if isinstance(target_status, SwapStatus) else str(target_status)
        target = SwapStateMachine.parse_target(value)
        if target == SwapStatus.ACCEPTED:
            return self.accept_swap(swap_id, acting_user_id)
        if target == SwapStatus.DECLINED:
            return self.decline_swap(swap_id, acting_user_id)
        return self.cancel_swap(swap_id, acting_user_id)

    @BaseService.measure_operation("accept_swap")
    def accept_swap(self, swap_id: str, acting_user_id: str) -> SwapRequest:
        """
        Accept a pending swap, claiming both listings for its window.

        Protocol, all inside one transaction and under the listing mutex:
        0. on SQLite, take the database write lock (BEGIN IMMEDIATE)
        1. lock the target row and re-read its status
        2. lock every other pending swap competing for a listing in the window
        3. re-check accepted overlaps
        4. conditional update pending -> accepted
        Both parties are notified after commit.
        """
        swap = self.get_swap(swap_id)
        SwapStateMachine.authorize(swap, acting_user_id, SwapStatus.ACCEPTED)
        SwapStateMachine.validate(swap, SwapStatus.ACCEPTED)
        listing_ids = swap.listing_ids

        self.log_operation("accept_swap", swap_id=swap_id, acting_user_id=acting_user_id)
        if not supports_row_locks(self.db):
            self.logger.debug("Row locks unavailable; listing mutex serialises acceptance")

        try:
            with self.lock_registry.hold(listing_ids):
                with self.transaction():
                    self.repository.acquire_write_lock()
                    self.repository.apply_lock_timeout(settings.swap_db_lock_timeout_ms)

                    locked = self.repository.get_for_update(swap_id)
                    if locked is None:
                        raise NotFoundException(
                            "Swap not found", code="SWAP_NOT_FOUND", details={"swap_id": swap_id}
                        )
                    SwapStateMachine.validate(locked, SwapStatus.ACCEPTED)
                    self._require_active_listings(locked)

                    competitors = self.conflict_repository.lock_pending_overlaps(
                        locked.listing_ids, locked.start_date, locked.end_date, locked.id
                    )
                    if competitors:
                        self.logger.debug(
                            f"Locked {len(competitors)} competing pending swap(s) for {swap_id}"
                        )

                    conflicts = self.conflict_repository.get_accepted_overlaps(
                        locked.listing_ids,
                        locked.start_date,
                        locked.end_date,
                        exclude_swap_id=locked.id,
                    )
                    if conflicts:
                        raise SwapConflictException([c.id for c in conflicts])

                    updated = self.repository.compare_and_set_status(
                        swap_id, SwapStatus.PENDING, SwapStatus.ACCEPTED, now=self._now()
                    )
                    if updated != 1:
                        self._raise_lost_race(swap_id, SwapStatus.ACCEPTED)
        except Exception as e:
            prometheus_metrics.record_swap_transition(SwapStatus.ACCEPTED.value, _outcome(e))
            raise

        prometheus_metrics.record_swap_transition(SwapStatus.ACCEPTED.value, "success")
        accepted = self._reload(swap_id)
        listing_title = _listing_title(accepted, "requested")
        self._notify(
            accepted.requester_id,
            NotificationType.SWAP_REQUEST_ACCEPTED,
            accepted,
            listing_title=listing_title,
            recipient_role=SwapActor.REQUESTER.value,
        )
        self._notify(
            accepted.requested_user_id,
            NotificationType.SWAP_REQUEST_ACCEPTED,
            accepted,
            listing_title=listing_title,
            recipient_role=SwapActor.REQUESTED_USER.value,
        )
        return accepted

    @BaseService.measure_operation("decline_swap")
    def decline_swap(self, swap_id: str, acting_user_id: str) -> SwapRequest:
        """Requested user refuses a pending swap. The requester is notified."""
        declined = self._simple_transition(swap_id, acting_user_id, SwapStatus.DECLINED)
        self._notify(
            declined.requester_id,
            NotificationType.SWAP_REQUEST_DECLINED,
            declined,
            listing_title=_listing_title(declined, "requested"),
        )
        return declined

    @BaseService.measure_operation("cancel_swap")
    def cancel_swap(self, swap_id: str, acting_user_id: str) -> SwapRequest:
        """Requester withdraws a pending swap. Both parties are notified."""
        cancelled = self._simple_transition(swap_id, acting_user_id, SwapStatus.CANCELLED)
        self._notify(
            cancelled.requester_id,
            NotificationType.SWAP_CANCELLED,
            cancelled,
            listing_title=_listing_title(cancelled, "requested"),
        )
        self._notify(
            cancelled.requested_user_id,
            NotificationType.SWAP_CANCELLED,
            cancelled,
            listing_title=_listing_title(cancelled, "requester"),
        )
        return cancelled

    # Helpers

    def _simple_transition(
        self, swap_id: str, acting_user_id: str, target: SwapStatus
    ) -> SwapRequest:
        """
        Decline/cancel: no exclusive claim, so no listing locks.

        The update is still conditional on pending so it cannot overwrite
        a swap that was accepted concurrently.
        """
        swap = self.get_swap(swap_id)
        SwapStateMachine.authorize(swap, acting_user_id, target)
        SwapStateMachine.validate(swap, target)
        self.log_operation(
            f"{target.value}_swap", swap_id=swap_id, acting_user_id=acting_user_id
        )

        try:
            with self.transaction():
                updated = self.repository.compare_and_set_status(
                    swap_id, SwapStatus.PENDING, target, now=self._now()
                )
                if updated != 1:
                    self._raise_lost_race(swap_id, target)
        except Exception as e:
            prometheus_metrics.record_swap_transition(target.value, _outcome(e))
            raise

        prometheus_metrics.record_swap_transition(target.value, "success")
        return self._reload(swap_id)

    def _require_active_listings(self, swap: SwapRequest) -> None:
        for listing_id in swap.listing_ids:
            listing = self._require_listing(listing_id)
            if not listing.is_active:
                raise InvalidStateException(
                    swap.status,
                    SwapStatus.ACCEPTED.value,
                    message="One of the listings in this swap is no longer active",
                )

    def _raise_lost_race(self, swap_id: str, target: SwapStatus) -> None:
        current = self.repository.reload(swap_id)
        if current is None:
            raise NotFoundException(
                "Swap not found", code="SWAP_NOT_FOUND", details={"swap_id": swap_id}
            )
        self.logger.info(
            f"Swap {swap_id} changed to {current.status} before it could become {target.value}"
        )
        raise InvalidStateException(current.status, target.value)

    def _reload(self, swap_id: str) -> SwapRequest:
        swap = self.repository.reload(swap_id)
        if swap is None:
            raise NotFoundException(
                "Swap not found", code="SWAP_NOT_FOUND", details={"swap_id": swap_id}
            )
        return swap

    def _notify(
        self,
        user_id: str,
        event_type: NotificationType,
        swap: SwapRequest,
        **extra: Any,
    ) -> None:
        """Report a swap event. Never raises: the swap change is already committed."""
        payload: Dict[str, Any] = {
            "swap_id": swap.id,
            "status": swap.status,
            "requester_id": swap.requester_id,
            "requested_user_id": swap.requested_user_id,
            "requester_listing_id": swap.requester_listing_id,
            "requested_listing_id": swap.requested_listing_id,
            "start_date": swap.start_utc.isoformat(),
            "end_date": swap.end_utc.isoformat(),
            **extra,
        }
        try:
            self.notification_sink.notify(user_id, event_type.value, payload)
        except Exception as e:
            self.logger.error(
                f"Notification {event_type.value} for swap {swap.id} failed: {str(e)}",
                exc_info=True,
            )


def _listing_title(swap: SwapRequest, side: str) -> str:
    listing = swap.requested_listing if side == "requested" else swap.requester_listing
    return listing.title if listing is not None else ""


def _outcome(exc: Exception) -> str:
    kind = getattr(exc, "kind", None)
    return kind.value if kind is not None else "error"
