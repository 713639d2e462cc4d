"""Utilities for UTC day keys and millisecond timestamps."""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional

UTC = timezone.utc

DAY_MS = 24 * 60 * 60 * 1000


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def midnight_utc(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=UTC)


def to_ms(dt: datetime) -> int:
    """Milliseconds since the epoch; naive values are treated as UTC."""

    return int(ensure_utc(dt).timestamp() * 1000)


def from_ms(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=UTC)


def now_ms() -> int:
    return to_ms(utc_now())


def day_start_utc(ms: int) -> int:
    """Floor a millisecond instant to its UTC midnight."""

    return int(ms) - (int(ms) % DAY_MS)


def today_utc(now: Optional[datetime] = None) -> int:
    """Return the UTC-midnight timestamp (ms) for ``now`` or the current instant."""

    moment = ensure_utc(now) if now is not None else utc_now()
    return to_ms(midnight_utc(moment.date()))


def day_key(d: date) -> int:
    return to_ms(midnight_utc(d))


def add_days(day_ms: int, days: int) -> int:
    return int(day_ms) + days * DAY_MS


def utc_weekday(day_ms: int) -> int:
    """Weekday of a UTC day key, 0 = Sunday .. 6 = Saturday."""

    return (from_ms(day_ms).weekday() + 1) % 7


def format_day(day_ms: Optional[int]) -> str:
    if day_ms is None:
        return "-"
    return from_ms(day_ms).date().isoformat()


__all__ = [
    "DAY_MS",
    "UTC",
    "add_days",
    "day_key",
    "day_start_utc",
    "ensure_utc",
    "format_day",
    "from_ms",
    "midnight_utc",
    "now_ms",
    "to_ms",
    "today_utc",
    "utc_now",
    "utc_weekday",
]
