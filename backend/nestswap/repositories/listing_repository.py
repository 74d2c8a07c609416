"""
Listing and user lookups used by the swap engine's collaborators.
"""

import logging
from typing import Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.listing import Listing
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ListingRepository(BaseRepository[Listing]):
    def __init__(self, db: Session):
        super().__init__(db, Listing)


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def get_subscription_status(self, user_id: str) -> Optional[str]:
        try:
            row = self.db.query(User.subscription_status).filter(User.id == user_id).first()
            return row[0] if row else None
        except SQLAlchemyError as e:
            self.logger.error(f"Error reading subscription for {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to read subscription: {str(e)}") from e
