"""
In-app notification records written by the notification sink.
"""

from __future__ import annotations

from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.types import JSON

from ..core.timezone_utils import utc_now
from ..core.ulid_helper import generate_ulid
from ..database import Base


class NotificationType(str, Enum):
    """Swap events users are told about."""

    SWAP_REQUEST_RECEIVED = "swap_request_received"
    SWAP_REQUEST_ACCEPTED = "swap_request_accepted"
    SWAP_REQUEST_DECLINED = "swap_request_declined"
    SWAP_CANCELLED = "swap_cancelled"


class Notification(Base):
    """A single in-app notification for one user."""

    __tablename__ = "notifications"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    type = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    swap_id = Column(String(26), ForeignKey("swaps.id", ondelete="SET NULL"), nullable=True)
    payload = Column(JSON, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (Index("ix_notifications_user_created", "user_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<Notification {self.id} user={self.user_id} type={self.type}>"
