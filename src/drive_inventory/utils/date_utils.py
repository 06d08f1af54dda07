"""
Date and time utilities for Drive Inventory.

Remote stores report timestamps in a mix of naive and zone-aware forms; all
internal arithmetic is done on aware UTC datetimes.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def age_in_days(value: Optional[datetime], as_of: datetime) -> Optional[int]:
    """
    Whole days between ``value`` and ``as_of``.

    Timestamps in the future count as age 0.
    """
    if value is None:
        return None
    delta = ensure_utc(as_of) - ensure_utc(value)
    return max(0, delta.days)

