"""Activity streaks that tolerate scheduled pauses."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Iterable

from goalpace.goals.models import PausePeriod
from goalpace.goals.pace import LoggedSession, start_of_day


@dataclass(frozen=True)
class StreakData:
    """Current and longest runs of consecutive active days."""
    current_streak: int = 0
    longest_streak: int = 0
    today_in_streak: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "today_in_streak": self.today_in_streak,
        }


def _gap_is_paused(after: date, days: int, pauses: list[PausePeriod]) -> bool:
    """Whether every day strictly between ``after`` and ``after + days`` is paused."""
    for offset in range(1, days):
        day = after + timedelta(days=offset)
        if not any(p.contains(day) for p in pauses):
            return False
    return True


def calculate_streak(
    session_starts: Iterable[date | datetime],
    pause_periods: Iterable[PausePeriod] = (),
    today: date | None = None,
) -> StreakData:
    """Calculate streaks from session start times.

    A missed day does not break a streak when it falls inside a pause
    period. The current streak drops to zero once a non-paused day has
    passed without activity.
    """
    days = sorted({start_of_day(start) for start in session_starts})
    if not days:
        return StreakData()

    pauses = list(pause_periods)
    today = today or date.today()

    current = 1
    longest = 0
    for prev, day in zip(days, days[1:]):
        gap = (day - prev).days
        if gap == 1 or _gap_is_paused(prev, gap, pauses):
            current += 1
        else:
            longest = max(longest, current)
            current = 1
    longest = max(longest, current)

    since_last = (today - days[-1]).days
    if since_last == 0:
        return StreakData(current_streak=current, longest_streak=longest, today_in_streak=True)

    if since_last > 1 and not _gap_is_paused(days[-1], since_last, pauses):
        current = 0
    return StreakData(current_streak=current, longest_streak=longest, today_in_streak=False)


def calculate_today_focus(
    sessions: Iterable[LoggedSession],
    today: date | None = None,
) -> int:
    """Total seconds logged in sessions that started today."""
    today = today or date.today()
    return sum(s.duration_seconds for s in sessions if start_of_day(s.start_time) == today)
