"""
Clock helpers shared by the moderation ledger and the proxy engine.

Every component that reasons about time takes a ``Clock`` (a zero-argument
callable returning epoch milliseconds) so tests can drive expiry without
sleeping.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], int]


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def utc_now() -> datetime:
    """Return an aware UTC datetime for record timestamps."""
    return datetime.now(timezone.utc)


def ms_to_datetime(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def format_duration(millis: int) -> str:
    """
    Render a duration the short way moderation notices use it.

    ``0`` or negative values mean permanent. Otherwise the largest whole
    unit is used: ``45s``, ``5m``, ``3h``, ``2d``.
    """
    if millis <= 0:
        return "permanently"

    seconds = millis // 1000
    if seconds < 60:
        return f"{seconds}s"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h"
    return f"{hours // 24}d"
