"""
Listing directory: the swap engine's read-only view of listings.

Listing CRUD lives elsewhere. The engine needs only the owner, the
active flag and a title for notification copy.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from ..repositories import RepositoryFactory
from ..repositories.listing_repository import ListingRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListingInfo:
    id: str
    owner_id: str
    is_active: bool
    title: str = ""


class ListingDirectory(Protocol):
    def get_listing(self, listing_id: str) -> Optional[ListingInfo]:
        """Return the listing, or None when it does not exist."""
        ...


class SqlListingDirectory:
    """ListingDirectory backed by the listings table."""

    def __init__(self, db: Session, repository: Optional[ListingRepository] = None):
        self.repository = repository or RepositoryFactory.create_listing_repository(db)

    def get_listing(self, listing_id: str) -> Optional[ListingInfo]:
        listing = self.repository.get_by_id(listing_id, load_relationships=False)
        if listing is None:
            return None
        return ListingInfo(
            id=listing.id,
            owner_id=listing.owner_id,
            is_active=bool(listing.is_active),
            title=listing.title,
        )
