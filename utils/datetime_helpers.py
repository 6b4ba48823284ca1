import math
from datetime import datetime, timezone
from typing import Optional


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Return the datetime as a timezone-aware UTC value.

    Naive values are assumed to already be UTC (SQLite hands them back
    without tzinfo); aware values are converted.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_utc_datetime(dt: Optional[datetime]) -> Optional[str]:
    """
    Format a datetime as ISO 8601 with a 'Z' suffix, or None.
    """
    dt = ensure_utc(dt)
    if dt is None:
        return None

    iso_string = dt.isoformat()
    if iso_string.endswith("+00:00"):
        return iso_string[: -len("+00:00")] + "Z"
    return iso_string


def seconds_until(deadline: datetime, now: datetime) -> int:
    """Whole seconds from now until deadline, rounded up, never negative."""
    remaining = (ensure_utc(deadline) - ensure_utc(now)).total_seconds()
    if remaining <= 0:
        return 0
    return math.ceil(remaining)


# Wall-clock collaborator; swapped for a fixed clock in tests
class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)
