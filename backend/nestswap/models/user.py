"""
User model.

The swap engine only reads users: identity and billing are owned by the
account and subscription services, which write these rows.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, String, Text

from ..core.enums import SubscriptionStatus
from ..core.timezone_utils import utc_now
from ..database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    avatar_url = Column(Text, nullable=True)
    subscription_status = Column(
        String(20), nullable=False, default=SubscriptionStatus.NONE.value
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint(
            "subscription_status IN "
            "('none', 'active', 'past_due', 'canceled', 'incomplete', 'trialing')",
            name="ck_users_subscription_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<User {self.id} {self.name!r} subscription={self.subscription_status}>"
