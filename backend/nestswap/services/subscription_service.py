# backend/nestswap/services/subscription_service.py
"""
Subscription gate for swap features.

Creating and accepting swaps require a membership. Billing itself is
handled by the subscription provider; this service only reads the
mirrored status.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.enums import ENTITLED_SUBSCRIPTION_STATUSES
from ..core.exceptions import PaymentRequiredException
from ..repositories import RepositoryFactory
from ..repositories.listing_repository import UserRepository
from .base import BaseService

logger = logging.getLogger(__name__)


class SubscriptionService(BaseService):
    def __init__(self, db: Session, user_repository: Optional[UserRepository] = None):
        super().__init__(db)
        self.user_repository = user_repository or RepositoryFactory.create_user_repository(db)

    def is_user_subscribed(self, user_id: str) -> bool:
        """True when the user's subscription is active or trialing."""
        status = self.user_repository.get_subscription_status(user_id)
        return status in ENTITLED_SUBSCRIPTION_STATUSES

    def require_subscription(self, user_id: str) -> None:
        """
        Raises:
            PaymentRequiredException: if the user has no entitlement
        """
        if not self.is_user_subscribed(user_id):
            logger.info("Subscription required", extra={"user_id": user_id})
            raise PaymentRequiredException()
