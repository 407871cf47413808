"""
Wall-clock helpers. All timestamps in Continuum are integer epoch milliseconds.
"""

from __future__ import annotations

import time
from datetime import datetime, tzinfo
from typing import Callable

Clock = Callable[[], int]

MS_PER_SECOND = 1_000
MS_PER_MINUTE = 60_000
MS_PER_HOUR = 3_600_000


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def to_datetime(ms: int, tz: tzinfo | None = None) -> datetime:
    """Epoch milliseconds → aware datetime (local zone when tz is None)."""
    return datetime.fromtimestamp(ms / 1000, tz=tz).astimezone(tz)


def to_iso(ms: int) -> str:
    return to_datetime(ms).isoformat(timespec="milliseconds")


def sunday_weekday(moment: datetime) -> int:
    """Weekday index with 0=Sunday … 6=Saturday."""
    return (moment.weekday() + 1) % 7


def ms_until_next_minute(ms: int, tz: tzinfo | None = None) -> int:
    moment = to_datetime(ms, tz)
    into_minute = moment.second * MS_PER_SECOND + moment.microsecond // 1000
    return MS_PER_MINUTE - into_minute
