# backend/nestswap/api/dependencies/__init__.py
"""
Central export point for all dependencies.
"""

from .auth import get_current_user_id, require_subscription
from .database import get_db
from .services import (
    get_notification_sink,
    get_subscription_service,
    get_swap_service,
)

__all__ = [
    # Auth
    "get_current_user_id",
    "require_subscription",
    # Database
    "get_db",
    # Services
    "get_notification_sink",
    "get_subscription_service",
    "get_swap_service",
]
