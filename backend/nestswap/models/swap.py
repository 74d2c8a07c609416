# backend/nestswap/models/swap.py
"""
Swap request model for the NestSwap platform.

A swap is a proposed reciprocal stay: the requester offers one of their
listings in exchange for a stay at the requested user's listing over the
same date window. Swaps are never deleted; terminal statuses are history.

Status is only ever changed by SwapService through the state machine.
"""

from datetime import datetime, timedelta
from enum import Enum
import logging
from typing import Any, Optional

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship

from ..core.timezone_utils import ensure_utc, utc_now
from ..core.ulid_helper import generate_ulid
from ..database import Base

logger = logging.getLogger(__name__)


class SwapStatus(str, Enum):
    """Swap lifecycle statuses."""

    PENDING = "pending"  # Initial - awaiting the requested user
    ACCEPTED = "accepted"  # Exclusive claim on both listings for the window
    DECLINED = "declined"  # Refused by the requested user
    CANCELLED = "cancelled"  # Withdrawn by the requester


TERMINAL_SWAP_STATUSES = frozenset(
    {SwapStatus.ACCEPTED, SwapStatus.DECLINED, SwapStatus.CANCELLED}
)


class SwapRequest(Base):
    """
    A date-ranged, bidirectional exchange between two listings.

    The window is half-open: [start_date, end_date).
    """

    __tablename__ = "swaps"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)

    # Parties
    requester_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    requested_user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Listings being exchanged
    requester_listing_id = Column(
        String(36), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    requested_listing_id = Column(
        String(36), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Exchange window
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)

    status = Column(String(20), nullable=False, default=SwapStatus.PENDING.value)
    notes = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    # Relationships (read-only projections for display)
    requester = relationship("User", foreign_keys=[requester_id], viewonly=True)
    requested_user = relationship("User", foreign_keys=[requested_user_id], viewonly=True)
    requester_listing = relationship("Listing", foreign_keys=[requester_listing_id], viewonly=True)
    requested_listing = relationship("Listing", foreign_keys=[requested_listing_id], viewonly=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'accepted', 'declined', 'cancelled')",
            name="ck_swaps_status",
        ),
        CheckConstraint("end_date > start_date", name="ck_swaps_window_order"),
        CheckConstraint("requester_id <> requested_user_id", name="ck_swaps_distinct_parties"),
        CheckConstraint(
            "requester_listing_id <> requested_listing_id", name="ck_swaps_distinct_listings"
        ),
        Index("ix_swaps_status_window", "status", "start_date", "end_date"),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = SwapStatus.PENDING.value

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<SwapRequest {self.id}: {self.requester_listing_id}<->{self.requested_listing_id} "
            f"[{self.start_date} - {self.end_date}) status={self.status}>"
        )

    @property
    def status_enum(self) -> SwapStatus:
        return SwapStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.status_enum in TERMINAL_SWAP_STATUSES

    @property
    def listing_ids(self) -> tuple[str, str]:
        return (self.requester_listing_id, self.requested_listing_id)

    @property
    def start_utc(self) -> datetime:
        return ensure_utc(self.start_date)

    @property
    def end_utc(self) -> datetime:
        return ensure_utc(self.end_date)

    @property
    def duration(self) -> timedelta:
        return self.end_utc - self.start_utc

    @property
    def duration_days(self) -> int:
        """Whole days in the window, rounded up as shown to users."""
        seconds = self.duration.total_seconds()
        return int(-(-seconds // 86400))

    def is_party(self, user_id: Optional[str]) -> bool:
        return user_id is not None and user_id in (self.requester_id, self.requested_user_id)
