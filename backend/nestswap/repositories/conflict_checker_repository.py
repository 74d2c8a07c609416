# backend/nestswap/repositories/conflict_checker_repository.py
"""
ConflictChecker Repository for the NestSwap swap engine

Answers "which swaps claim one of these listings during this window?".

Two swaps conflict when their windows overlap (half-open, so a swap
ending exactly when another starts does not) and any of the four
listing-id pairs coincide.
"""

from datetime import datetime
import logging
from typing import List, Optional, Sequence, cast

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..core.timezone_utils import ensure_utc
from ..models.swap import SwapRequest, SwapStatus
from .base_repository import BaseRepository
from .swap_repository import raise_storage_error

logger = logging.getLogger(__name__)


class ConflictCheckerRepository(BaseRepository[SwapRequest]):
    """
    Repository for conflict checking data access.

    Pure reads, except for lock_pending_overlaps which takes row locks
    inside the caller's transaction.
    """

    def __init__(self, db: Session):
        """Initialize with SwapRequest model as primary."""
        super().__init__(db, SwapRequest)
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def _overlap_clause(listing_ids: Sequence[str], start_date: datetime, end_date: datetime):
        ids = list(dict.fromkeys(listing_ids))
        return and_(
            or_(
                SwapRequest.requester_listing_id.in_(ids),
                SwapRequest.requested_listing_id.in_(ids),
            ),
            SwapRequest.start_date < ensure_utc(end_date),
            SwapRequest.end_date > ensure_utc(start_date),
        )

    def get_swaps_overlapping(
        self,
        listing_ids: Sequence[str],
        start_date: datetime,
        end_date: datetime,
        status: SwapStatus,
        exclude_swap_id: Optional[str] = None,
    ) -> List[SwapRequest]:
        """
        Get swaps in a given status that share a listing and overlap the window.

        Args:
            listing_ids: Listings of the candidate swap
            start_date: Window start (inclusive)
            end_date: Window end (exclusive)
            status: Status to match
            exclude_swap_id: Optional swap to leave out (the candidate itself)

        Returns:
            Matching swaps ordered by start date
        """
        try:
            query = self.db.query(SwapRequest).filter(
                SwapRequest.status == status.value,
                self._overlap_clause(listing_ids, start_date, end_date),
            )
            if exclude_swap_id:
                query = query.filter(SwapRequest.id != exclude_swap_id)
            return cast(
                List[SwapRequest],
                query.order_by(SwapRequest.start_date, SwapRequest.id).all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting overlapping {status.value} swaps: {str(e)}")
            raise RepositoryException(f"Failed to get conflicting swaps: {str(e)}") from e

    def get_accepted_overlaps(
        self,
        listing_ids: Sequence[str],
        start_date: datetime,
        end_date: datetime,
        exclude_swap_id: Optional[str] = None,
    ) -> List[SwapRequest]:
        return self.get_swaps_overlapping(
            listing_ids, start_date, end_date, SwapStatus.ACCEPTED, exclude_swap_id
        )

    def lock_pending_overlaps(
        self,
        listing_ids: Sequence[str],
        start_date: datetime,
        end_date: datetime,
        exclude_swap_id: str,
    ) -> List[SwapRequest]:
        """
        Row-lock every other pending swap competing for these listings in the window.

        Rows are locked in id order so concurrent acceptances always queue
        in the same order.
        """
        try:
            return cast(
                List[SwapRequest],
                self.db.query(SwapRequest)
                .filter(
                    SwapRequest.status == SwapStatus.PENDING.value,
                    SwapRequest.id != exclude_swap_id,
                    self._overlap_clause(listing_ids, start_date, end_date),
                )
                .order_by(SwapRequest.id)
                .with_for_update(of=SwapRequest)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking competing pending swaps: {str(e)}")
            raise_storage_error(e, "lock competing swaps")
            raise
