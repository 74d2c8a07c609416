# backend/nestswap/repositories/factory.py
"""
Repository Factory for the NestSwap swap engine

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from sqlalchemy.orm import Session

from .conflict_checker_repository import ConflictCheckerRepository
from .listing_repository import ListingRepository, UserRepository
from .notification_repository import NotificationRepository
from .swap_repository import SwapRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_swap_repository(db: Session) -> SwapRepository:
        return SwapRepository(db)

    @staticmethod
    def create_conflict_checker_repository(db: Session) -> ConflictCheckerRepository:
        return ConflictCheckerRepository(db)

    @staticmethod
    def create_listing_repository(db: Session) -> ListingRepository:
        return ListingRepository(db)

    @staticmethod
    def create_user_repository(db: Session) -> UserRepository:
        return UserRepository(db)

    @staticmethod
    def create_notification_repository(db: Session) -> NotificationRepository:
        return NotificationRepository(db)
