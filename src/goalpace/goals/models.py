"""Goal, task and focus session records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable

from goalpace.focus.pomodoro import PomodoroCycle, TimerMode


class TaskStatus(str, Enum):
    """Task workflow status."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


def _parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class GoalNode:
    """A goal in the hierarchy.

    ``deep_estimate_total_seconds`` is a cached sum over every task in the
    goal's subtree. Only the estimate propagator writes it.
    """
    id: int | None = None
    parent_id: int | None = None
    title: str = ""
    description: str = ""
    deadline: datetime | None = None
    deep_estimate_total_seconds: int = 0
    color: str | None = None
    created_at: datetime = field(default_factory=datetime.now)

    # Runtime fields (not stored in DB)
    children: list[GoalNode] = field(default_factory=list)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def estimated_hours(self) -> float:
        return self.deep_estimate_total_seconds / 3600

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> GoalNode:
        """Create from database row."""
        return cls(
            id=row.get("id"),
            parent_id=row.get("parent_id"),
            title=row.get("title", ""),
            description=row.get("description") or "",
            deadline=_parse_datetime(row.get("deadline")),
            deep_estimate_total_seconds=row.get("deep_estimate_total_seconds") or 0,
            color=row.get("color"),
            created_at=_parse_datetime(row.get("created_at")) or datetime.now(),
        )

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to dictionary for database storage."""
        return {
            "parent_id": self.parent_id,
            "title": self.title,
            "description": self.description,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "deep_estimate_total_seconds": self.deep_estimate_total_seconds,
            "color": self.color,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class TaskNode:
    """A leaf task carrying an effort estimate; no estimate counts as zero."""
    id: int | None = None
    goal_id: int | None = None
    title: str = ""
    estimated_time_seconds: int | None = None
    status: TaskStatus = TaskStatus.PENDING
    sort_order: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime | None = None

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> TaskNode:
        """Create from database row."""
        return cls(
            id=row.get("id"),
            goal_id=row.get("goal_id"),
            title=row.get("title", ""),
            estimated_time_seconds=row.get("estimated_time_seconds"),
            status=TaskStatus(row.get("status", "pending")),
            sort_order=row.get("sort_order") or 0,
            created_at=_parse_datetime(row.get("created_at")) or datetime.now(),
            completed_at=_parse_datetime(row.get("completed_at")),
        )

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to dictionary for database storage."""
        return {
            "goal_id": self.goal_id,
            "title": self.title,
            "estimated_time_seconds": self.estimated_time_seconds,
            "status": self.status.value,
            "sort_order": self.sort_order,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass
class FocusSessionRecord:
    """A logged focus session. Immutable apart from its notes."""
    id: int | None = None
    goal_id: int | None = None
    task_id: int | None = None
    start_time: datetime = field(default_factory=datetime.now)
    end_time: datetime | None = None
    duration_seconds: int = 0
    mode: TimerMode = TimerMode.STOPWATCH
    pomodoro_cycle: PomodoroCycle = PomodoroCycle.WORK
    note_accomplished: str | None = None
    note_next_step: str | None = None
    vibe: str | None = None

    @property
    def is_productive(self) -> bool:
        """Whether the session counts as work rather than a break."""
        return self.mode is TimerMode.STOPWATCH or self.pomodoro_cycle is PomodoroCycle.WORK

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> FocusSessionRecord:
        """Create from database row."""
        return cls(
            id=row.get("id"),
            goal_id=row.get("goal_id"),
            task_id=row.get("task_id"),
            start_time=_parse_datetime(row.get("start_time")) or datetime.now(),
            end_time=_parse_datetime(row.get("end_time")),
            duration_seconds=row.get("duration_seconds", 0),
            mode=TimerMode(row.get("mode", "stopwatch")),
            pomodoro_cycle=PomodoroCycle(row.get("pomodoro_cycle", "work")),
            note_accomplished=row.get("note_accomplished"),
            note_next_step=row.get("note_next_step"),
            vibe=row.get("vibe"),
        )

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to dictionary for database storage."""
        return {
            "goal_id": self.goal_id,
            "task_id": self.task_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_seconds": self.duration_seconds,
            "mode": self.mode.value,
            "pomodoro_cycle": self.pomodoro_cycle.value,
            "note_accomplished": self.note_accomplished,
            "note_next_step": self.note_next_step,
            "vibe": self.vibe,
        }


@dataclass
class PausePeriod:
    """A scheduled break (e.g. vacation), inclusive on both ends."""
    start_date: date
    end_date: date

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


def build_goal_tree(goals: Iterable[GoalNode]) -> list[GoalNode]:
    """Nest a flat list of goals under their parents.

    Goals whose parent is not in the list are treated as roots. Input order
    is preserved among siblings.
    """
    goals = list(goals)
    by_id = {goal.id: goal for goal in goals}
    for goal in goals:
        goal.children = []

    roots = []
    for goal in goals:
        parent = by_id.get(goal.parent_id) if goal.parent_id is not None else None
        if parent is not None and parent is not goal:
            parent.children.append(goal)
        else:
            roots.append(goal)
    return roots
