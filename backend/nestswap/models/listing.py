"""
Listing model.

Listings are managed by the listing CRUD service; the swap engine reads
ownership and the active flag through the listing directory.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from ..core.enums import PropertyType
from ..core.timezone_utils import utc_now
from ..database import Base


class Listing(Base):
    __tablename__ = "listings"

    id = Column(String(36), primary_key=True, index=True)
    owner_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String(200), nullable=False)
    property_type = Column("type", String(20), nullable=False, default=PropertyType.OTHER.value)
    city = Column(String(100), nullable=False)
    country = Column(String(100), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    owner = relationship("User", foreign_keys=[owner_id], viewonly=True)

    __table_args__ = (
        CheckConstraint(
            "type IN ('caravan', 'cabin', 'motorhome', 'tent', 'other')",
            name="ck_listings_type",
        ),
    )

    def __repr__(self) -> str:
        return f"<Listing {self.id} owner={self.owner_id} active={self.is_active}>"
