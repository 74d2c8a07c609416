"""
Database models for the NestSwap swap engine.

- SwapRequest: the swap lifecycle record (owned by SwapService)
- User, Listing: read-only views of collaborator-owned data
- Notification: in-app notifications written by the notification sink
"""

from .listing import Listing
from .notification import Notification, NotificationType
from .swap import TERMINAL_SWAP_STATUSES, SwapRequest, SwapStatus
from .user import User

__all__ = [
    "Listing",
    "Notification",
    "NotificationType",
    "SwapRequest",
    "SwapStatus",
    "TERMINAL_SWAP_STATUSES",
    "User",
]
