"""
Timezone-aware datetime helpers.

All values stored by the lead pipeline are UTC. SQLite hands back naive
datetimes, so anything read from the database goes through ensure_utc()
before it is compared with utc_now().
"""

from datetime import datetime, timezone, timedelta
from typing import Optional
import pytz

DEFAULT_TIMEZONE = 'America/New_York'


def utc_now() -> datetime:
    """Current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Make a datetime timezone-aware in UTC.

    Naive values are assumed to already be UTC; aware values in another zone
    are converted.

    Example:
        >>> ensure_utc(datetime(2025, 1, 1, 12, 0)).tzinfo
        datetime.timezone.utc
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_in(minutes: int = 0, days: int = 0, now: Optional[datetime] = None) -> datetime:
    """A UTC instant offset from now (or from the supplied reference)."""
    base = ensure_utc(now) if now else utc_now()
    return base + timedelta(minutes=minutes, days=days)


def utc_to_local(dt: datetime, local_tz: Optional[str] = None) -> datetime:
    """
    Convert a UTC datetime into a named local timezone.

    Unknown zone names fall back to DEFAULT_TIMEZONE.
    """
    try:
        zone = pytz.timezone(local_tz or DEFAULT_TIMEZONE)
    except pytz.UnknownTimeZoneError:
        zone = pytz.timezone(DEFAULT_TIMEZONE)
    return ensure_utc(dt).astimezone(zone)


def format_local_time(dt: datetime, local_tz: Optional[str] = None) -> str:
    """Render a clock time such as '3:30 PM' in the broker's timezone."""
    local = utc_to_local(dt, local_tz)
    return local.strftime('%I:%M %p').lstrip('0')


def format_utc_iso(dt: Optional[datetime] = None) -> Optional[str]:
    """ISO 8601 string in UTC, or None for a missing value."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()


def parse_utc_iso(iso_string: str) -> datetime:
    """
    Parse an ISO 8601 string (including a trailing 'Z') into aware UTC.

    Raises:
        ValueError: If the string is not a valid ISO timestamp
    """
    if iso_string.endswith('Z'):
        iso_string = iso_string[:-1] + '+00:00'
    return ensure_utc(datetime.fromisoformat(iso_string))
