"""
Repository layer for the NestSwap swap engine.

All SQL lives here; services never query the session directly.
"""

from .base_repository import BaseRepository
from .conflict_checker_repository import ConflictCheckerRepository
from .factory import RepositoryFactory
from .listing_repository import ListingRepository, UserRepository
from .notification_repository import NotificationRepository
from .swap_repository import SwapRepository

__all__ = [
    "BaseRepository",
    "ConflictCheckerRepository",
    "ListingRepository",
    "NotificationRepository",
    "RepositoryFactory",
    "SwapRepository",
    "UserRepository",
]
