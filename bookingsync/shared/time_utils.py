"""Timestamp and calendar helpers for availability and sync"""

import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

# Trailing basic-format offset such as -0400 or +0530
_BASIC_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")


def normalize_offset(value: str) -> str:
    """
    Rewrite a trailing ``±HHMM`` offset as ``±HH:MM``.

    ``2025-08-20T15:00:00-0400`` -> ``2025-08-20T15:00:00-04:00``. Values ending
    in ``Z`` or already carrying an extended offset are returned unchanged.
    """
    value = str(value).strip()
    if value.endswith("Z") or "T" not in value:
        return value
    return _BASIC_OFFSET.sub(r"\1:\2", value)


def months_between(start_date: str, end_date: str) -> list[str]:
    """Every YYYY-MM month key touched by the inclusive range [start_date, end_date]"""
    start = date.fromisoformat(start_date)
    end = date.fromisoformat(end_date)
    year, month = start.year, start.month
    months = []
    while (year, month) <= (end.year, end.month):
        months.append(f"{year:04d}-{month:02d}")
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return months


def parse_instant(value: str, fallback_tz: Optional[str] = None) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware datetime.

    Accepts ``Z`` and basic-format offsets. Naive values are interpreted in
    ``fallback_tz`` (UTC when not given). Raises ValueError on junk.
    """
    if not value:
        raise ValueError("empty timestamp")
    cleaned = normalize_offset(value)
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"
    parsed = datetime.fromisoformat(cleaned)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=ZoneInfo(fallback_tz) if fallback_tz else timezone.utc)
    return parsed


def ensure_utc(value: datetime) -> datetime:
    """Convert to UTC; naive values (as read back from SQLite) are assumed UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def date_window(today: date, days_back: int, days_forward: int) -> tuple[str, str]:
    """(minDate, maxDate) as YYYY-MM-DD strings around ``today``"""
    return (
        (today - timedelta(days=days_back)).isoformat(),
        (today + timedelta(days=days_forward)).isoformat(),
    )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
