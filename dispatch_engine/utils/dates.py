"""
Date resolution for loosely typed collaborator timestamps.
"""

from datetime import date, datetime, time, timezone
from typing import Any, Optional


def resolve_date(value: Any) -> Optional[datetime]:
    """
    Resolve a timestamp-like value to an aware UTC datetime.

    Accepts datetimes (naive values are taken as UTC), dates, ISO-8601
    strings, epoch milliseconds and objects exposing ``to_datetime()``
    (e.g. document-store timestamps). Returns None when unresolvable.
    """
    if value is None or isinstance(value, bool):
        return None

    if hasattr(value, "to_datetime") and callable(value.to_datetime):
        try:
            value = value.to_datetime()
        except (TypeError, ValueError, OverflowError):
            return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return resolve_date(datetime.fromisoformat(text))
        except ValueError:
            return None

    return None


def to_date_key(moment: datetime) -> str:
    """UTC ``YYYY-MM-DD`` key for a datetime."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%d")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
