"""
Timezone utilities for the swap engine.

Swap windows are stored as UTC instants. SQLite hands datetimes back
without tzinfo and drops tzinfo when binding, so every value read, bound
or compared goes through ensure_utc.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalise a datetime to aware UTC.

    Naive values are interpreted as UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
