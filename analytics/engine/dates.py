"""
Date resolution for work item timestamps.

Accepted shapes:
  - date / datetime objects
  - epoch milliseconds (int or float, bool excluded)
  - ISO-8601 strings ("2024-03-05", "2024-03-05T10:00:00Z", offsets, ...)
  - {"seconds": ..., "nanoseconds": ...} mappings (epoch-seconds timestamps)

Weeks are labelled with their ISO year and week number.

Anything else resolves to None. Nothing in this module raises.
"""
from __future__ import annotations

import math
from datetime import date, datetime, timedelta, timezone
from typing import Any, Mapping, Optional

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_STRING_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
)


def _from_epoch_ms(value: float) -> Optional[datetime]:
    try:
        millis = float(value)
        if math.isnan(millis) or math.isinf(millis):
            return None
        return _EPOCH + timedelta(milliseconds=millis)
    except (OverflowError, ValueError):
        return None


def _from_seconds_pair(value: Mapping) -> Optional[datetime]:
    seconds = value.get("seconds")
    nanos = value.get("nanoseconds", 0) or 0
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
        return None
    if isinstance(nanos, bool) or not isinstance(nanos, (int, float)):
        return None
    try:
        millis = seconds * 1000 + nanos / 1_000_000
    except OverflowError:
        return None
    return _from_epoch_ms(millis)


def _from_string(value: str) -> Optional[datetime]:
    s = value.strip()
    if not s:
        return None
    if s.endswith("Z") or s.endswith("z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        dt = None
        for fmt in _STRING_FORMATS:
            try:
                dt = datetime.strptime(s, fmt)
                break
            except ValueError:
                continue
    if dt is None:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _to_utc(dt: datetime) -> Optional[datetime]:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    try:
        return dt.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        return None


def resolve_timestamp(value: Any) -> Optional[datetime]:
    """Resolve any supported timestamp shape to a UTC-aware datetime."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _to_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return _from_epoch_ms(value)
    if isinstance(value, str):
        resolved = _from_string(value)
        return _to_utc(resolved) if resolved else None
    if isinstance(value, Mapping):
        return _from_seconds_pair(value)
    return None


def resolve_date(value: Any) -> Optional[date]:
    """Resolve any supported timestamp shape to a calendar date (UTC), or None."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    resolved = resolve_timestamp(value)
    return resolved.date() if resolved else None


def to_epoch_ms(value: Optional[datetime]) -> int:
    """Epoch milliseconds of a resolved timestamp; 0 when unknown."""
    if value is None:
        return 0
    return int((value - _EPOCH) / timedelta(milliseconds=1))


def week_key(value: Optional[date]) -> Optional[str]:
    """ISO week label such as ``"2024-W09"``; None for an unknown date."""
    if value is None:
        return None
    iso_year, iso_week, _ = value.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"
