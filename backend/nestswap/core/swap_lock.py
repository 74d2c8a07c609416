"""
Process-local mutex keyed by listing id.

Accepting a swap holds the locks for both of its listings for the whole
transaction, so two acceptances that share a listing run one after the
other inside a worker. Locks are always taken in sorted key order.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
import time
from typing import Dict, Iterable, Iterator, List, Optional

from ..monitoring.prometheus_metrics import prometheus_metrics
from .config import settings
from .exceptions import TransientException

logger = logging.getLogger(__name__)


def _lock_key(listing_id: str) -> str:
    return f"listing:{listing_id}:swap-mutex"


class _Entry:
    __slots__ = ("lock", "refs")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.refs = 0


class ListingLockRegistry:
    """Reference-counted registry of per-listing locks."""

    def __init__(self) -> None:
        self._entries: Dict[str, _Entry] = {}
        self._guard = threading.Lock()

    def _checkout(self, key: str) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.refs += 1
            return entry

    def _checkin(self, key: str) -> None:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                return
            entry.refs -= 1
            if entry.refs <= 0:
                del self._entries[key]

    def held_keys(self) -> List[str]:
        with self._guard:
            return sorted(self._entries)

    @contextmanager
    def hold(self, listing_ids: Iterable[str], timeout_s: Optional[float] = None) -> Iterator[None]:
        """
        Acquire every listing lock or none of them.

        Raises:
            TransientException: if a lock is not obtained within timeout_s
        """
        timeout = settings.swap_lock_timeout_seconds if timeout_s is None else timeout_s
        keys = sorted({_lock_key(listing_id) for listing_id in listing_ids})
        deadline = time.monotonic() + timeout
        acquired: List[tuple[str, _Entry]] = []
        try:
            for key in keys:
                entry = self._checkout(key)
                remaining = max(0.0, deadline - time.monotonic())
                if not entry.lock.acquire(timeout=remaining):
                    self._checkin(key)
                    prometheus_metrics.record_swap_lock("acquire", "timeout")
                    logger.warning(
                        "swap_listing_lock_timeout",
                        extra={
                            "lock_key": key,
                            "timeout_s": timeout,
                            "held_keys": self.held_keys(),
                        },
                    )
                    raise TransientException(
                        "Another swap on this listing is being processed. Please retry.",
                        details={"lock_key": key},
                    )
                acquired.append((key, entry))
            prometheus_metrics.record_swap_lock("acquire", "success")
            yield
        finally:
            for key, entry in reversed(acquired):
                entry.lock.release()
                self._checkin(key)
            if acquired:
                prometheus_metrics.record_swap_lock("release", "success")


_registry = ListingLockRegistry()


def get_listing_lock_registry() -> ListingLockRegistry:
    return _registry
