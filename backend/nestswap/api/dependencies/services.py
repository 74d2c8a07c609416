# backend/nestswap/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from functools import lru_cache
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.notification_service import NotificationService, NotificationSink
from ...services.subscription_service import SubscriptionService
from ...services.swap_service import SwapService
from .database import get_db

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _notification_service_singleton() -> NotificationService:
    return NotificationService()


def get_notification_sink() -> NotificationSink:
    """Get the notification sink used for swap events."""
    return _notification_service_singleton()


def get_subscription_service(db: Session = Depends(get_db)) -> SubscriptionService:
    return SubscriptionService(db)


def get_swap_service(
    db: Session = Depends(get_db),
    notification_sink: NotificationSink = Depends(get_notification_sink),
) -> SwapService:
    """
    Get swap service instance.

    Args:
        db: Database session
        notification_sink: Where swap events are reported

    Returns:
        SwapService instance
    """
    return SwapService(db, notification_sink=notification_sink)
