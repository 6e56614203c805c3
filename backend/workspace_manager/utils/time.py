"""Timezone helpers – provide a single UTC-aware *now()* function.

Server rows store naive UTC datetimes (SQLite has no timezone support) while
the offline client exchanges ISO-8601 strings.  Import these helpers instead
of calling the stdlib directly so both sides agree on what "now" means.
"""

from datetime import datetime
from datetime import timezone


def utc_now() -> datetime:  # noqa: D401 – simple utility
    """Return *aware* current time in UTC."""

    return datetime.now(timezone.utc)


def utc_now_naive() -> datetime:  # noqa: D401 – simple utility
    """Return *naive* current time in UTC for database compatibility."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime (naive values are assumed UTC)."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value) -> datetime | None:
    """Parse an ISO-8601 string (or pass through a datetime) into aware UTC.

    Returns *None* for empty or unparsable input.
    """

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    try:
        return as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        return None


__all__ = ["utc_now", "utc_now_naive", "as_utc", "parse_timestamp"]
