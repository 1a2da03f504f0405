"""Shared epoch normalization helpers."""
from __future__ import annotations

import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

_SECONDS_CEILING = 10_000_000_000
_MICROS_FLOOR = 10_000_000_000_000
_NANOS_FLOOR = 10_000_000_000_000_000


def normalize_epoch_ms(value: int) -> int:
    """Classify an epoch integer by magnitude and convert it to milliseconds.

    Values that are zero or negative are returned unchanged so callers can
    treat them as unknown.
    """
    if value <= 0:
        return value
    if value < _SECONDS_CEILING:
        return value * 1000
    if value > _NANOS_FLOOR:
        return value // 1_000_000
    if value > _MICROS_FLOOR:
        return value // 1000
    return value


def to_epoch_int(value: Any) -> int | None:
    """Coerce a JSON number to an integer; anything else is not a timestamp."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return int(value)
    return None


def iso_to_epoch_ms(value: Any) -> int | None:
    """Parse an ISO-8601 timestamp string into epoch milliseconds."""
    if not isinstance(value, str):
        return None
    token = value.strip()
    if not token:
        return None
    try:
        parsed = datetime.fromisoformat(token.replace("Z", "+00:00"))
    except ValueError:
        return None
    dt = parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def modified_ms(path: Path) -> int:
    """File modification time in epoch milliseconds, or now when unreadable."""
    try:
        return path.stat().st_mtime_ns // 1_000_000
    except OSError:
        return now_ms()
