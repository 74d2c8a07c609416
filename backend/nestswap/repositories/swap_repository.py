# backend/nestswap/repositories/swap_repository.py
"""
Swap Repository for the NestSwap swap engine

Implements all data access for swap requests:
- Swap creation and lookups with party/listing eager loading
- Per-user listings (incoming / outgoing)
- Row locking of the swap being accepted
- Compare-and-swap status updates

Nothing here commits; SwapService owns the transaction.
"""

from datetime import datetime
import logging
from typing import List, Optional, cast

from sqlalchemy import or_, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.exceptions import RepositoryException, TransientException, is_transient_db_error
from ..core.timezone_utils import utc_now
from ..models.swap import SwapRequest, SwapStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

DIRECTION_INCOMING = "incoming"
DIRECTION_OUTGOING = "outgoing"
DIRECTION_ALL = "all"


def raise_storage_error(exc: SQLAlchemyError, action: str) -> None:
    """Translate lock/timeout failures to TransientException, everything else to RepositoryException."""
    if isinstance(exc, OperationalError) and is_transient_db_error(exc):
        raise TransientException(details={"action": action}) from exc
    raise RepositoryException(f"Failed to {action}: {str(exc)}") from exc


class SwapRepository(BaseRepository[SwapRequest]):
    """
    Repository for swap request data access.

    The only component allowed to write the swaps table; it is used
    exclusively by SwapService.
    """

    def __init__(self, db: Session):
        """Initialize with SwapRequest model."""
        super().__init__(db, SwapRequest)
        self.logger = logging.getLogger(__name__)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(SwapRequest.requester),
            joinedload(SwapRequest.requested_user),
            joinedload(SwapRequest.requester_listing),
            joinedload(SwapRequest.requested_listing),
        )

    # Lookups

    def list_for_user(
        self,
        user_id: str,
        direction: str = DIRECTION_ALL,
        status: Optional[SwapStatus] = None,
        limit: Optional[int] = None,
    ) -> List[SwapRequest]:
        """
        Get swaps the user takes part in, newest first.

        Args:
            user_id: The user
            direction: 'incoming' (user is the requested party), 'outgoing'
                (user is the requester) or 'all'
            status: Optional status filter
            limit: Optional maximum number of rows

        Returns:
            List of swaps with parties and listings loaded
        """
        try:
            if direction == DIRECTION_INCOMING:
                party_filter = SwapRequest.requested_user_id == user_id
            elif direction == DIRECTION_OUTGOING:
                party_filter = SwapRequest.requester_id == user_id
            else:
                party_filter = or_(
                    SwapRequest.requester_id == user_id,
                    SwapRequest.requested_user_id == user_id,
                )

            query = self._apply_eager_loading(self.db.query(SwapRequest)).filter(party_filter)
            if status is not None:
                query = query.filter(SwapRequest.status == SwapStatus(status).value)
            query = query.order_by(SwapRequest.created_at.desc(), SwapRequest.id.desc())
            if limit:
                query = query.limit(limit)
            return cast(List[SwapRequest], query.all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing swaps for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to list swaps: {str(e)}") from e

    # Locking and conditional writes

    def apply_lock_timeout(self, timeout_ms: int) -> None:
        """
        Bound how long row-lock waits may block inside the current transaction.

        Only PostgreSQL supports a per-transaction lock timeout.
        """
        if timeout_ms <= 0 or self.dialect_name != "postgresql":
            return
        # SET does not accept bind parameters; the value is an int.
        self.db.execute(text(f"SET LOCAL lock_timeout = '{int(timeout_ms)}ms'"))

    def acquire_write_lock(self) -> None:
        """
        Take the database-wide write lock on SQLite before any read.

        SQLite ignores FOR UPDATE and pysqlite defers BEGIN until the first
        write, so without this two processes could both pass the overlap
        check. BEGIN IMMEDIATE makes the second writer wait on the busy
        timeout until the first commits. No-op on other dialects and when
        the connection already has a transaction open.
        """
        if self.dialect_name != "sqlite":
            return
        try:
            dbapi_connection = self.db.connection().connection.dbapi_connection
            if dbapi_connection is None or dbapi_connection.in_transaction:
                self.logger.debug("SQLite transaction already open; skipping BEGIN IMMEDIATE")
                return
            self.db.execute(text("BEGIN IMMEDIATE"))
        except SQLAlchemyError as e:
            self.logger.error(f"Error taking swap store write lock: {str(e)}")
            raise_storage_error(e, "lock swap store")
            raise

    def get_for_update(self, swap_id: str) -> Optional[SwapRequest]:
        """
        Lock the swap row and re-read it.

        populate_existing() discards any state cached in the session so the
        status returned is the one visible under the lock.
        """
        try:
            return cast(
                Optional[SwapRequest],
                self.db.query(SwapRequest)
                .filter(SwapRequest.id == swap_id)
                .populate_existing()
                .with_for_update(of=SwapRequest)
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking swap {swap_id}: {str(e)}")
            raise_storage_error(e, "lock swap")
            raise

    def compare_and_set_status(
        self,
        swap_id: str,
        expected: SwapStatus,
        target: SwapStatus,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Set status to target only if it is still expected.

        Returns:
            Number of rows updated (0 or 1)
        """
        try:
            updated = (
                self.db.query(SwapRequest)
                .filter(SwapRequest.id == swap_id, SwapRequest.status == expected.value)
                .update(
                    {
                        SwapRequest.status: target.value,
                        SwapRequest.updated_at: now or utc_now(),
                    },
                    synchronize_session=False,
                )
            )
            return int(updated or 0)
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error updating swap {swap_id} {expected.value}->{target.value}: {str(e)}"
            )
            raise_storage_error(e, "update swap status")
            raise

    def reload(self, swap_id: str) -> Optional[SwapRequest]:
        """Fresh read with relationships, bypassing the identity map."""
        try:
            query = self._apply_eager_loading(
                self.db.query(SwapRequest).filter(SwapRequest.id == swap_id)
            )
            return cast(Optional[SwapRequest], query.populate_existing().first())
        except SQLAlchemyError as e:
            self.logger.error(f"Error reloading swap {swap_id}: {str(e)}")
            raise RepositoryException(f"Failed to reload swap: {str(e)}") from e
