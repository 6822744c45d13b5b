"""Wall-clock source for the focus timer."""

from __future__ import annotations

import time
from datetime import datetime
from typing import Protocol


class Clock(Protocol):
    """Anything that can report the current wall-clock time in milliseconds."""

    def now_ms(self) -> float: ...


class SystemClock:
    """Clock backed by the system wall clock.

    Wall-clock time is used on purpose: a process suspended by device sleep
    resumes with the full gap counted as elapsed.
    """

    def now_ms(self) -> float:
        return time.time() * 1000


def ms_to_datetime(timestamp_ms: float) -> datetime:
    """Convert an epoch-milliseconds timestamp to a local naive datetime."""
    return datetime.fromtimestamp(timestamp_ms / 1000)
