"""
Core Utilities

Shared helpers used across the application.
"""
from datetime import date, datetime, time, timezone
from typing import Any

# Sort key for timestamps that cannot be read; places them before everything.
OLDEST_TIMESTAMP = float("-inf")


def timestamp_sort_key(value: Any) -> float:
    """
    Chronological sort key for a created_at value as received.

    Accepts ISO-8601 strings, datetimes and epoch numbers. Naive values are
    read as UTC. Anything unreadable maps to OLDEST_TIMESTAMP.
    """
    if value is None or isinstance(value, bool):
        return OLDEST_TIMESTAMP
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return OLDEST_TIMESTAMP
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            return OLDEST_TIMESTAMP
    if isinstance(value, date) and not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    return OLDEST_TIMESTAMP
