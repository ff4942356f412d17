"""Helpers for the explicit `now` values threaded through the engine.

Nothing here reads the wall clock; callers always pass the instant.
"""
from datetime import date, datetime, timezone
from typing import Union


def ensure_utc(value: datetime) -> datetime:
    # naive datetimes are taken as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_day(value: Union[datetime, date]) -> date:
    """Calendar day of `value` in UTC. Plain dates pass through unchanged."""
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    return value
