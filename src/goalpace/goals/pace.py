"""Burndown projection: ideal straight-line pace versus logged effort."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Callable, Iterable, Protocol

from goalpace.goals.models import GoalNode

logger = logging.getLogger(__name__)


class LoggedSession(Protocol):
    start_time: datetime
    duration_seconds: int


class PaceStatus(str, Enum):
    """Where the actual burndown sits relative to the ideal line."""
    AHEAD = "ahead"        # Less effort remaining than planned
    ON_PACE = "on_pace"
    BEHIND = "behind"      # More effort remaining than planned
    NO_DATA = "no_data"    # Nothing to compare yet


@dataclass(frozen=True)
class PacePoint:
    """One day of the burndown series."""
    date: date
    ideal_remaining_hours: float
    actual_remaining_hours: float | None  # None for days after today

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "ideal_remaining_hours": self.ideal_remaining_hours,
            "actual_remaining_hours": self.actual_remaining_hours,
        }


@dataclass(frozen=True)
class PaceAssessment:
    """Latest actual point compared to the ideal line."""
    status: PaceStatus
    date: date | None = None
    ideal_remaining_hours: float | None = None
    actual_remaining_hours: float | None = None

    @property
    def delta_hours(self) -> float | None:
        """Remaining hours beyond plan; negative means ahead."""
        if self.actual_remaining_hours is None or self.ideal_remaining_hours is None:
            return None
        return self.actual_remaining_hours - self.ideal_remaining_hours


def start_of_day(value: date | datetime) -> date:
    """Calendar day of a timestamp, in local time for timezone-aware values."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    return value


def bucket_hours_by_day(sessions: Iterable[LoggedSession]) -> dict[date, float]:
    """Total logged hours per calendar day of each session's start."""
    buckets: dict[date, float] = defaultdict(float)
    for session in sessions:
        buckets[start_of_day(session.start_time)] += session.duration_seconds / 3600
    return dict(buckets)


class PaceProjector:
    """Builds the day-by-day burndown for a goal.

    Pure and read-only; the only ambient input is "today", which can be
    injected for deterministic results.

    Usage:
        projector = PaceProjector()
        points = projector.project(goal, sessions)
        assessment = assess_pace(points)
    """

    def __init__(self, today: Callable[[], date] | None = None):
        self._today = today or date.today

    def project(
        self,
        goal: GoalNode,
        sessions: Iterable[LoggedSession],
        estimated_seconds: int | None = None,
    ) -> list[PacePoint]:
        """Project a goal's burndown from creation to deadline.

        Args:
            goal: Goal providing ``created_at`` and ``deadline``
            sessions: Sessions logged anywhere in the goal's subtree
            estimated_seconds: Total effort; defaults to the goal's deep estimate

        Returns:
            One point per day, inclusive of both ends, or an empty list when
            there is no deadline, no positive estimate, or no day span.
        """
        if estimated_seconds is None:
            estimated_seconds = goal.deep_estimate_total_seconds

        if goal.deadline is None or not estimated_seconds or estimated_seconds <= 0:
            return []

        estimated_hours = estimated_seconds / 3600
        start = start_of_day(goal.created_at)
        total_days = (start_of_day(goal.deadline) - start).days
        if total_days <= 0:
            return []

        ideal_burn_per_day = estimated_hours / total_days
        actual_by_day = bucket_hours_by_day(sessions)
        today = self._today()

        points = []
        burned = 0.0
        for i in range(total_days + 1):
            day = start + timedelta(days=i)
            ideal = max(0.0, estimated_hours - i * ideal_burn_per_day)

            actual: float | None = None
            if day <= today:
                burned += actual_by_day.get(day, 0.0)
                actual = max(0.0, estimated_hours - burned)

            points.append(PacePoint(date=day, ideal_remaining_hours=ideal, actual_remaining_hours=actual))

        logger.debug(f"Projected {len(points)} pace points for goal {goal.id}")
        return points


def assess_pace(points: list[PacePoint], tolerance_hours: float = 0.5) -> PaceAssessment:
    """Compare the most recent actual point against the ideal line."""
    latest = next((p for p in reversed(points) if p.actual_remaining_hours is not None), None)
    if latest is None:
        return PaceAssessment(status=PaceStatus.NO_DATA)

    delta = latest.actual_remaining_hours - latest.ideal_remaining_hours
    if delta > tolerance_hours:
        status = PaceStatus.BEHIND
    elif delta < -tolerance_hours:
        status = PaceStatus.AHEAD
    else:
        status = PaceStatus.ON_PACE

    return PaceAssessment(
        status=status,
        date=latest.date,
        ideal_remaining_hours=latest.ideal_remaining_hours,
        actual_remaining_hours=latest.actual_remaining_hours,
    )
