"""Timezone helpers – provide a single UTC *now()* for the whole codebase.

SQLite drops tzinfo on the way in, so rows are written with naive UTC values
(:pyfunc:`utc_now_naive`).  Comparisons between a stored value and "now" must
therefore use :pyfunc:`as_naive_utc` on both sides.
"""

from datetime import datetime
from datetime import timezone


def utc_now_naive() -> datetime:  # noqa: D401 – simple utility
    """Return *naive* current time in UTC for database compatibility."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values pass through."""

    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


__all__ = ["utc_now_naive", "as_naive_utc"]
