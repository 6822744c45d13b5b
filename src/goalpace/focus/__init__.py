"""Focus timer: stopwatch and Pomodoro session accounting."""

from goalpace.focus.clock import Clock, SystemClock
from goalpace.focus.driver import TimerDriver
from goalpace.focus.pomodoro import (
    CycleCompletion,
    FinalizedSession,
    InvalidStateTransition,
    PomodoroCycle,
    TimerMode,
    TimerSession,
    TimerStateMachine,
    TimerStatus,
    interval_duration_ms,
)

__all__ = [
    "Clock",
    "SystemClock",
    "TimerDriver",
    "CycleCompletion",
    "FinalizedSession",
    "InvalidStateTransition",
    "PomodoroCycle",
    "TimerMode",
    "TimerSession",
    "TimerStateMachine",
    "TimerStatus",
    "interval_duration_ms",
]
