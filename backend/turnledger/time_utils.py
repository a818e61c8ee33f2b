from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

DEFAULT_BUSINESS_TIMEZONE = "America/Los_Angeles"


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def business_date(now: Optional[datetime] = None, tz_name: str = DEFAULT_BUSINESS_TIMEZONE) -> str:
    """
    Date key ("YYYY-MM-DD") used to bucket a day's transactions.

    The day rolls over at midnight in ``tz_name``, not at server midnight.
    Client, API and the reset job all call this so they agree on "today".
    A naive ``now`` is interpreted as UTC.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz_name)).date().isoformat()


def parse_business_date(value: Optional[str]) -> Optional[str]:
    """
    Validate a "YYYY-MM-DD" business date.

    - None / "" -> None
    - anything that is not a calendar date raises ValueError
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    return date.fromisoformat(s).isoformat()


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
