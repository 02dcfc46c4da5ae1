"""
Date helpers shared by the ranking clients, the repository and the matcher.

Remote services disagree on timestamp formats (ISO strings with or without
``Z``, epoch seconds, epoch milliseconds), so everything is funnelled through
``to_datetime`` and handled as timezone-aware UTC.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

SECOND = timedelta(seconds=1)
MINUTE = timedelta(minutes=1)
HOUR = timedelta(hours=1)
DAY = timedelta(days=1)

# Epoch values above this are treated as milliseconds
_EPOCH_MS_THRESHOLD = 10_000_000_000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_datetime(value: Any) -> Optional[datetime]:
    """Coerce a datetime, ISO string or epoch number to an aware UTC datetime, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > _EPOCH_MS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            # NaN, infinity or outside the platform's time_t range
            return None
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(s)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def format_date(value: Optional[datetime]) -> str:
    if value is None:
        return "never"
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
