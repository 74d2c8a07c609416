# backend/nestswap/services/conflict_checker.py
"""
Conflict Checker Service for the NestSwap swap engine

Handles swap conflict detection:
- Overlap of two half-open date windows
- Whether two swap records conflict
- Looking up accepted swaps that already claim a listing

An accepted swap is an exclusive claim on both of its listings for its
window. Pending swaps never block anything; they only compete.
"""

from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.timezone_utils import ensure_utc
from ..models.swap import SwapRequest
from ..repositories import RepositoryFactory
from ..repositories.conflict_checker_repository import ConflictCheckerRepository
from .base import BaseService

logger = logging.getLogger(__name__)


def windows_overlap(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime
) -> bool:
    """
    Half-open overlap test: [start_a, end_a) and [start_b, end_b).

    A window ending exactly when the other starts does not overlap.
    """
    return ensure_utc(start_a) < ensure_utc(end_b) and ensure_utc(end_a) > ensure_utc(start_b)


def swaps_conflict(a: SwapRequest, b: SwapRequest) -> bool:
    """Two distinct swaps conflict when they share any listing and their windows overlap."""
    if a.id is not None and a.id == b.id:
        return False
    if not set(a.listing_ids) & set(b.listing_ids):
        return False
    return windows_overlap(a.start_date, a.end_date, b.start_date, b.end_date)


class SwapConflictChecker(BaseService):
    """
    Service answering "which accepted swaps already hold these listings?".

    Used informationally when a swap is created and as a blocking check
    when one is accepted.
    """

    def __init__(self, db: Session, repository: Optional[ConflictCheckerRepository] = None):
        """
        Initialize conflict checker service.

        Args:
            db: Database session
            repository: Optional ConflictCheckerRepository instance
        """
        super().__init__(db)
        self.logger = logging.getLogger(__name__)
        self.repository = repository or RepositoryFactory.create_conflict_checker_repository(db)

    @BaseService.measure_operation("find_swap_conflicts")
    def find_conflicts(
        self,
        listing_a: str,
        listing_b: str,
        start_date: datetime,
        end_date: datetime,
        exclude_swap_id: Optional[str] = None,
    ) -> List[SwapRequest]:
        """
        Find accepted swaps that share a listing with the candidate and overlap its window.

        Args:
            listing_a: First listing of the candidate swap
            listing_b: Second listing of the candidate swap
            start_date: Window start (inclusive)
            end_date: Window end (exclusive)
            exclude_swap_id: Optional swap to leave out of the results

        Returns:
            Conflicting accepted swaps; empty means no conflict
        """
        return self.repository.get_accepted_overlaps(
            [listing_a, listing_b],
            start_date,
            end_date,
            exclude_swap_id=exclude_swap_id,
        )
