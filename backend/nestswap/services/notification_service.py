# backend/nestswap/services/notification_service.py
"""
Notification Service for the NestSwap swap engine

Records in-app notifications for swap events. Delivery is
fire-and-forget: a failure here is logged and never reaches the swap
operation that triggered it, which has already committed.

Each notification is written in its own short-lived session so it can
neither join nor roll back the caller's transaction.
"""

import logging
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..models.notification import Notification, NotificationType
from ..repositories import RepositoryFactory

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def notify(self, user_id: str, event_type: str, payload: Mapping[str, Any]) -> None:
        ...


_TITLES: Dict[NotificationType, str] = {
    NotificationType.SWAP_REQUEST_RECEIVED: "New Swap Request",
    NotificationType.SWAP_REQUEST_ACCEPTED: "Swap Request Accepted!",
    NotificationType.SWAP_REQUEST_DECLINED: "Swap Request Declined",
    NotificationType.SWAP_CANCELLED: "Swap Cancelled",
}


def render_message(event_type: NotificationType, payload: Mapping[str, Any]) -> str:
    """User-facing copy for an event, filled from the payload's listing title."""
    listing_title = payload.get("listing_title") or "your listing"
    if event_type == NotificationType.SWAP_REQUEST_RECEIVED:
        return "Someone wants to swap with your property!"
    if event_type == NotificationType.SWAP_REQUEST_ACCEPTED:
        if payload.get("recipient_role") == "requested_user":
            return f"You accepted the swap for {listing_title}."
        return f"Your swap request for {listing_title} has been accepted!"
    if event_type == NotificationType.SWAP_REQUEST_DECLINED:
        return f"Your swap request for {listing_title} has been declined."
    return f"The swap for {listing_title} has been cancelled."


class NotificationService:
    """
    NotificationSink that persists in-app notifications.

    Args:
        session_factory: Callable returning a new Session (defaults to SessionLocal)
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None) -> None:
        self.session_factory = session_factory or SessionLocal
        self.logger = logging.getLogger(__name__)

    def notify(self, user_id: str, event_type: str, payload: Mapping[str, Any]) -> None:
        try:
            kind = NotificationType(event_type)
        except ValueError:
            self.logger.warning(f"Ignoring unknown notification type {event_type!r}")
            return

        db: Optional[Session] = None
        try:
            db = self.session_factory()
            repository = RepositoryFactory.create_notification_repository(db)
            repository.create(
                user_id=user_id,
                type=kind.value,
                title=_TITLES[kind],
                message=render_message(kind, payload),
                swap_id=payload.get("swap_id"),
                payload=dict(payload),
                is_read=False,
            )
            db.commit()
            self.logger.debug(f"Notification {kind.value} recorded for user {user_id}")
        except Exception as e:
            if db is not None:
                db.rollback()
            self.logger.error(
                f"Failed to record {kind.value} notification for user {user_id}: {str(e)}",
                exc_info=True,
            )
        finally:
            if db is not None:
                db.close()
