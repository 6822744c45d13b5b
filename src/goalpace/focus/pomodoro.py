"""Focus timer state machine with stopwatch and Pomodoro modes."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from goalpace.core.config import PomodoroSettings
from goalpace.focus.clock import Clock, SystemClock, ms_to_datetime

logger = logging.getLogger(__name__)


class TimerMode(str, Enum):
    """How the timer counts."""
    STOPWATCH = "stopwatch"  # Count up, never completes on its own
    POMODORO = "pomodoro"    # Fixed-length work/break intervals


class PomodoroCycle(str, Enum):
    """Interval kind within a Pomodoro session."""
    WORK = "work"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"

    @property
    def is_break(self) -> bool:
        return self is not PomodoroCycle.WORK


class TimerStatus(Enum):
    """Lifecycle state of the timer."""
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    AWAITING_TRANSITION = "awaiting_transition"
    FINALIZED = "finalized"


class InvalidStateTransition(RuntimeError):
    """A timer operation was invoked from a state that does not allow it."""

    def __init__(self, operation: str, status: TimerStatus, detail: str = ""):
        self.operation = operation
        self.status = status
        message = f"Cannot {operation} while {status.value}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


@dataclass
class TimerSession:
    """Mutable accounting for one logical focus session."""
    mode: TimerMode = TimerMode.STOPWATCH
    cycle: PomodoroCycle = PomodoroCycle.WORK
    is_active: bool = False
    interval_start_ms: float | None = None
    accumulated_ms_this_interval: float = 0.0
    total_accumulated_ms: float = 0.0  # Previously completed intervals only
    pomodoros_completed_in_cycle_set: int = 0
    session_started_ms: float | None = None
    work_ms: float = 0.0
    break_ms: float = 0.0
    pomodoros_completed: int = 0
    interruption_count: int = 0


@dataclass(frozen=True)
class CycleCompletion:
    """Outcome of finishing one Pomodoro interval."""
    completed_cycle: PomodoroCycle
    next_cycle: PomodoroCycle
    interval_ms: float
    pomodoros_completed_in_cycle_set: int
    auto_started: bool


@dataclass(frozen=True)
class FinalizedSession:
    """Result handed to the caller for persistence as a focus session record."""
    duration_seconds: int
    mode: TimerMode
    cycle: PomodoroCycle
    started_at: datetime
    ended_at: datetime
    pomodoros_completed: int
    work_seconds: int
    break_seconds: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "duration_seconds": self.duration_seconds,
            "mode": self.mode.value,
            "cycle": self.cycle.value,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "pomodoros_completed": self.pomodoros_completed,
            "work_seconds": self.work_seconds,
            "break_seconds": self.break_seconds,
        }


def interval_duration_ms(
    mode: TimerMode,
    cycle: PomodoroCycle,
    settings: PomodoroSettings,
) -> float:
    """Length of one interval in milliseconds; unbounded for the stopwatch."""
    if mode is not TimerMode.POMODORO:
        return math.inf
    if cycle is PomodoroCycle.WORK:
        return settings.work_seconds * 1000
    elif cycle is PomodoroCycle.SHORT_BREAK:
        return settings.short_break_seconds * 1000
    else:
        return settings.long_break_seconds * 1000


def next_cycle_after(
    cycle: PomodoroCycle,
    completed_in_set: int,
    settings: PomodoroSettings,
) -> tuple[PomodoroCycle, int]:
    """Return the cycle that follows ``cycle`` and the updated work count.

    The count restarts once a long break has been taken.
    """
    if cycle is PomodoroCycle.LONG_BREAK:
        return PomodoroCycle.WORK, 0
    if cycle is PomodoroCycle.SHORT_BREAK:
        return PomodoroCycle.WORK, completed_in_set

    completed_in_set += 1
    if completed_in_set > 0 and completed_in_set % settings.cycles_until_long_break == 0:
        return PomodoroCycle.LONG_BREAK, completed_in_set
    return PomodoroCycle.SHORT_BREAK, completed_in_set


class TimerStateMachine:
    """Timer for a single focus session.

    All elapsed time is derived from clock reads, so ``current_elapsed_ms()``
    can be polled at any rate without drift and without mutating anything.
    Mutating calls must come from a single owner (e.g. one event loop).

    Usage:
        timer = TimerStateMachine(settings)
        timer.start(TimerMode.POMODORO)
        ...
        timer.check_for_auto_completion()  # on every tick
        timer.pause()
        timer.resume()
        result = timer.finalize()
    """

    def __init__(
        self,
        settings: PomodoroSettings | None = None,
        clock: Clock | None = None,
    ):
        self.settings = settings or PomodoroSettings()
        self._clock = clock or SystemClock()
        self._session = TimerSession()
        self._status = TimerStatus.IDLE

        # Callbacks
        self.on_cycle_complete: Callable[[CycleCompletion], None] | None = None
        self.on_work_interval_complete: Callable[[CycleCompletion], None] | None = None

    @property
    def status(self) -> TimerStatus:
        return self._status

    @property
    def session(self) -> TimerSession:
        """Get current timer accounting (read-only copy)."""
        return replace(self._session)

    @property
    def mode(self) -> TimerMode:
        return self._session.mode

    @property
    def cycle(self) -> PomodoroCycle:
        return self._session.cycle

    @property
    def next_cycle(self) -> PomodoroCycle | None:
        """Cycle waiting to be started, when awaiting a transition."""
        if self._status is TimerStatus.AWAITING_TRANSITION:
            return self._session.cycle
        return None

    # ==================== Reads ====================

    def current_elapsed_ms(self) -> float:
        """Elapsed time in the current interval. Pure read."""
        s = self._session
        elapsed = s.accumulated_ms_this_interval
        if s.is_active and s.interval_start_ms is not None:
            elapsed += max(0.0, self._clock.now_ms() - s.interval_start_ms)
        return elapsed

    def interval_duration_ms(self) -> float:
        """Configured length of the current interval."""
        return interval_duration_ms(self._session.mode, self._session.cycle, self.settings)

    def remaining_ms(self) -> float:
        """Time left in the current interval (infinite for the stopwatch)."""
        return max(0.0, self.interval_duration_ms() - self.current_elapsed_ms())

    def total_elapsed_ms(self) -> float:
        """Time across every interval of the session so far."""
        return self._session.total_accumulated_ms + self.current_elapsed_ms()

    # ==================== Transitions ====================

    def start(
        self,
        mode: TimerMode,
        initial_cycle: PomodoroCycle = PomodoroCycle.WORK,
    ) -> None:
        """Start a new session."""
        self._require("start", TimerStatus.IDLE)

        now = self._clock.now_ms()
        self._session = TimerSession(
            mode=mode,
            cycle=initial_cycle if mode is TimerMode.POMODORO else PomodoroCycle.WORK,
            is_active=True,
            interval_start_ms=now,
            session_started_ms=now,
        )
        self._status = TimerStatus.RUNNING
        logger.info(f"Timer started: {mode.value} ({self._session.cycle.value})")

    def pause(self) -> None:
        """Pause the running interval, banking its elapsed time."""
        self._require("pause", TimerStatus.RUNNING)

        s = self._session
        s.accumulated_ms_this_interval = self.current_elapsed_ms()
        s.is_active = False
        s.interval_start_ms = None
        s.interruption_count += 1
        self._status = TimerStatus.PAUSED
        logger.info("Timer paused")

    def resume(self) -> None:
        """Resume a paused interval."""
        self._require("resume", TimerStatus.PAUSED)

        s = self._session
        s.interval_start_ms = self._clock.now_ms()
        s.is_active = True
        self._status = TimerStatus.RUNNING
        logger.info("Timer resumed")

    def check_for_auto_completion(self) -> CycleCompletion | None:
        """Complete the current Pomodoro interval once its duration has elapsed.

        Safe to call on every tick: a no-op unless running in Pomodoro mode
        with the interval over, and the interval clock resets on completion.
        """
        if self._status is not TimerStatus.RUNNING or self._session.mode is not TimerMode.POMODORO:
            return None
        if self.current_elapsed_ms() < self.interval_duration_ms():
            return None
        return self._complete_interval()

    def complete_interval(self) -> CycleCompletion:
        """Finish the current Pomodoro interval early."""
        if self._status not in (TimerStatus.RUNNING, TimerStatus.PAUSED):
            raise InvalidStateTransition("complete interval", self._status)
        if self._session.mode is not TimerMode.POMODORO:
            raise InvalidStateTransition(
                "complete interval", self._status, "stopwatch sessions have no intervals"
            )
        return self._complete_interval()

    def start_next_interval(self) -> None:
        """Start the interval that is waiting after a completed one."""
        self._require("start next interval", TimerStatus.AWAITING_TRANSITION)
        self._arm()
        logger.info(f"Starting {self._session.cycle.value}")

    def skip_break(self) -> None:
        """Skip the pending break and go straight back to work."""
        self._require("skip break", TimerStatus.AWAITING_TRANSITION)
        if not self._session.cycle.is_break:
            raise InvalidStateTransition(
                "skip break", self._status, "next interval is not a break"
            )

        s = self._session
        s.cycle, s.pomodoros_completed_in_cycle_set = next_cycle_after(
            s.cycle, s.pomodoros_completed_in_cycle_set, self.settings
        )
        self._arm()
        logger.info("Break skipped, starting work")

    def finalize(self) -> FinalizedSession:
        """End the session and return its total duration across all intervals."""
        if self._status not in (
            TimerStatus.RUNNING,
            TimerStatus.PAUSED,
            TimerStatus.AWAITING_TRANSITION,
        ):
            raise InvalidStateTransition("finalize", self._status)

        s = self._session
        now = self._clock.now_ms()
        current = self.current_elapsed_ms()
        self._bank(s.cycle, current)
        total_ms = s.total_accumulated_ms + current

        result = FinalizedSession(
            duration_seconds=round(total_ms / 1000),
            mode=s.mode,
            cycle=s.cycle,
            started_at=ms_to_datetime(s.session_started_ms if s.session_started_ms is not None else now),
            ended_at=ms_to_datetime(now),
            pomodoros_completed=s.pomodoros_completed,
            work_seconds=round(s.work_ms / 1000),
            break_seconds=round(s.break_ms / 1000),
        )

        s.is_active = False
        s.interval_start_ms = None
        self._status = TimerStatus.FINALIZED
        logger.info(f"Timer finalized: {result.duration_seconds}s ({s.mode.value})")
        return result

    # ==================== Internals ====================

    def _require(self, operation: str, expected: TimerStatus) -> None:
        if self._status is not expected:
            raise InvalidStateTransition(operation, self._status)

    def _arm(self) -> None:
        s = self._session
        s.accumulated_ms_this_interval = 0.0
        s.interval_start_ms = self._clock.now_ms()
        s.is_active = True
        self._status = TimerStatus.RUNNING

    def _bank(self, cycle: PomodoroCycle, interval_ms: float) -> None:
        if cycle.is_break:
            self._session.break_ms += interval_ms
        else:
            self._session.work_ms += interval_ms

    def _complete_interval(self) -> CycleCompletion:
        s = self._session
        completed = s.cycle
        interval_ms = self.current_elapsed_ms()

        s.total_accumulated_ms += interval_ms
        self._bank(completed, interval_ms)
        s.accumulated_ms_this_interval = 0.0

        next_cycle, s.pomodoros_completed_in_cycle_set = next_cycle_after(
            completed, s.pomodoros_completed_in_cycle_set, self.settings
        )
        if completed is PomodoroCycle.WORK:
            s.pomodoros_completed += 1
        s.cycle = next_cycle

        auto_start = (
            self.settings.auto_start_breaks if next_cycle.is_break else self.settings.auto_start_work
        )
        if auto_start:
            self._arm()
        else:
            s.is_active = False
            s.interval_start_ms = None
            self._status = TimerStatus.AWAITING_TRANSITION

        completion = CycleCompletion(
            completed_cycle=completed,
            next_cycle=next_cycle,
            interval_ms=interval_ms,
            pomodoros_completed_in_cycle_set=s.pomodoros_completed_in_cycle_set,
            auto_started=auto_start,
        )
        logger.info(f"{completed.value} complete, next: {next_cycle.value}")

        self._fire(self.on_cycle_complete, completion)
        if completed is PomodoroCycle.WORK:
            self._fire(self.on_work_interval_complete, completion)
        return completion

    def _fire(
        self,
        callback: Callable[[CycleCompletion], None] | None,
        completion: CycleCompletion,
    ) -> None:
        if callback is None:
            return
        try:
            callback(completion)
        except Exception as e:
            logger.error(f"Error in timer callback: {e}")

    def summary(self) -> dict[str, Any]:
        """Get a summary of the current session."""
        s = self._session
        remaining = self.remaining_ms()
        return {
            "status": self._status.value,
            "mode": s.mode.value,
            "cycle": s.cycle.value,
            "is_active": s.is_active,
            "elapsed_seconds": round(self.current_elapsed_ms() / 1000),
            "remaining_seconds": None if math.isinf(remaining) else round(remaining / 1000),
            "total_seconds": round(self.total_elapsed_ms() / 1000),
            "pomodoros_completed": s.pomodoros_completed,
            "interruption_count": s.interruption_count,
            "session_started_at": (
                ms_to_datetime(s.session_started_ms).isoformat() if s.session_started_ms else None
            ),
        }
