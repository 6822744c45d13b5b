"""Goal and task persistence with estimate roll-up and session logging."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any

from goalpace.focus.pomodoro import CycleCompletion, FinalizedSession, PomodoroCycle, TimerMode
from goalpace.goals.estimates import EstimatePropagator, GoalNotFound
from goalpace.goals.models import (
    FocusSessionRecord,
    GoalNode,
    PausePeriod,
    TaskNode,
    TaskStatus,
    build_goal_tree,
)
from goalpace.goals.pace import PacePoint, PaceProjector
from goalpace.goals.streaks import StreakData, calculate_streak
from goalpace.storage.database import Database, Transaction

logger = logging.getLogger(__name__)

SUBTREE_CTE = """
    WITH RECURSIVE subtree(id) AS (
        SELECT id FROM goals WHERE id = ?
        UNION
        SELECT g.id FROM goals g JOIN subtree s ON g.parent_id = s.id
    )
"""

SUBTREE_QUERY = SUBTREE_CTE + "SELECT id FROM subtree"


class TaskNotFound(LookupError):
    """A task that the caller requires does not exist."""

    def __init__(self, task_id: int):
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")


class SessionNotFound(LookupError):
    """A focus session that the caller requires does not exist."""

    def __init__(self, session_id: int):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


def _validate_estimate(seconds: int | None) -> None:
    if seconds is not None and seconds < 0:
        raise ValueError(f"Estimate cannot be negative: {seconds}")


class GoalManager:
    """Manages goals, tasks and focus sessions.

    Every mutation that can change an estimate runs in one transaction
    together with the upward estimate walk, so readers never see a goal
    chain that disagrees with its tasks.
    """

    def __init__(self, db: Database, propagator: EstimatePropagator | None = None):
        self.db = db
        self.propagator = propagator or EstimatePropagator()

    # ==================== Goals ====================

    async def create_goal(self, goal: GoalNode) -> GoalNode:
        """Create a goal, optionally under a parent."""
        async with self.db.transaction() as tx:
            if goal.parent_id is not None:
                await self._require_goal_row(tx, goal.parent_id)

            goal.deep_estimate_total_seconds = 0
            goal.id = await tx.insert("goals", goal.to_db_dict())

        logger.info(f"Created goal: {goal.title} (ID: {goal.id})")
        return goal

    async def get_goal(self, goal_id: int) -> GoalNode | None:
        """Get a goal by ID."""
        row = await self.db.fetch_one("SELECT * FROM goals WHERE id = ?", (goal_id,))
        if row:
            return GoalNode.from_db_row(row)
        return None

    async def require_goal(self, goal_id: int) -> GoalNode:
        """Get a goal by ID or raise GoalNotFound."""
        goal = await self.get_goal(goal_id)
        if goal is None:
            raise GoalNotFound(goal_id)
        return goal

    async def list_goals(self) -> list[GoalNode]:
        """List all goals, parents before children where ids allow."""
        rows = await self.db.fetch_all("SELECT * FROM goals ORDER BY id ASC")
        return [GoalNode.from_db_row(row) for row in rows]

    async def get_goal_tree(self) -> list[GoalNode]:
        """All goals nested under their parents."""
        return build_goal_tree(await self.list_goals())

    async def move_goal(self, goal_id: int, new_parent_id: int | None) -> None:
        """Re-parent a goal and refresh both the old and new ancestor chains."""
        async with self.db.transaction() as tx:
            row = await self._require_goal_row(tx, goal_id)
            old_parent_id = row["parent_id"]

            if new_parent_id is not None:
                await self._require_goal_row(tx, new_parent_id)
                subtree = {r["id"] for r in await tx.fetch_all(SUBTREE_QUERY, (goal_id,))}
                if new_parent_id in subtree:
                    raise ValueError(f"Cannot move goal {goal_id} under its own descendant {new_parent_id}")

            await tx.execute(
                "UPDATE goals SET parent_id = ? WHERE id = ?", (new_parent_id, goal_id)
            )
            if old_parent_id is not None:
                await self.propagator.propagate(old_parent_id, tx)
            await self.propagator.propagate(goal_id, tx)

        logger.info(f"Moved goal {goal_id} from parent {old_parent_id} to {new_parent_id}")

    async def delete_goal(self, goal_id: int) -> None:
        """Delete a goal with its subtree, tasks and sessions."""
        async with self.db.transaction() as tx:
            row = await tx.fetch_one("SELECT parent_id FROM goals WHERE id = ?", (goal_id,))
            if not row:
                return

            await tx.execute("DELETE FROM goals WHERE id = ?", (goal_id,))
            if row["parent_id"] is not None:
                await self.propagator.propagate(row["parent_id"], tx)

        logger.info(f"Deleted goal ID: {goal_id}")

    # ==================== Tasks ====================

    async def create_task(self, task: TaskNode) -> TaskNode:
        """Create a task and roll its estimate up the goal chain."""
        _validate_estimate(task.estimated_time_seconds)
        if task.goal_id is None:
            raise ValueError("Task must belong to a goal")

        async with self.db.transaction() as tx:
            await self._require_goal_row(tx, task.goal_id)
            task.id = await tx.insert("tasks", task.to_db_dict())
            await self.propagator.propagate(task.goal_id, tx)

        logger.info(f"Created task: {task.title} (ID: {task.id})")
        return task

    async def get_task(self, task_id: int) -> TaskNode | None:
        """Get a task by ID."""
        row = await self.db.fetch_one("SELECT * FROM tasks WHERE id = ?", (task_id,))
        if row:
            return TaskNode.from_db_row(row)
        return None

    async def get_tasks(self, goal_id: int) -> list[TaskNode]:
        """Get the direct tasks of a goal."""
        rows = await self.db.fetch_all(
            "SELECT * FROM tasks WHERE goal_id = ? ORDER BY sort_order ASC, id ASC",
            (goal_id,),
        )
        return [TaskNode.from_db_row(row) for row in rows]

    async def list_tasks(self) -> list[TaskNode]:
        """Get every task."""
        rows = await self.db.fetch_all("SELECT * FROM tasks ORDER BY id ASC")
        return [TaskNode.from_db_row(row) for row in rows]

    async def update_task_estimate(self, task_id: int, estimated_time_seconds: int | None) -> TaskNode:
        """Change a task's estimate and roll the change up the goal chain."""
        _validate_estimate(estimated_time_seconds)

        async with self.db.transaction() as tx:
            row = await self._require_task_row(tx, task_id)
            await tx.execute(
                "UPDATE tasks SET estimated_time_seconds = ? WHERE id = ?",
                (estimated_time_seconds, task_id),
            )
            await self.propagator.propagate(row["goal_id"], tx)

        task = TaskNode.from_db_row({**row, "estimated_time_seconds": estimated_time_seconds})
        logger.info(f"Updated estimate for task {task_id}: {estimated_time_seconds}s")
        return task

    async def move_task(self, task_id: int, new_goal_id: int) -> None:
        """Move a task to another goal, refreshing both chains."""
        async with self.db.transaction() as tx:
            row = await self._require_task_row(tx, task_id)
            await self._require_goal_row(tx, new_goal_id)

            await tx.execute("UPDATE tasks SET goal_id = ? WHERE id = ?", (new_goal_id, task_id))
            await self.propagator.propagate(row["goal_id"], tx)
            await self.propagator.propagate(new_goal_id, tx)

        logger.info(f"Moved task {task_id} to goal {new_goal_id}")

    async def update_task_status(self, task_id: int, status: TaskStatus) -> None:
        """Set a task's status. Estimates are unaffected."""
        completed_at = datetime.now().isoformat() if status is TaskStatus.COMPLETED else None
        async with self.db.transaction() as tx:
            await self._require_task_row(tx, task_id)
            await tx.execute(
                "UPDATE tasks SET status = ?, completed_at = ? WHERE id = ?",
                (status.value, completed_at, task_id),
            )
        logger.info(f"Task {task_id} status: {status.value}")

    async def delete_task(self, task_id: int) -> None:
        """Delete a task and roll the removal up the goal chain."""
        async with self.db.transaction() as tx:
            row = await tx.fetch_one("SELECT goal_id FROM tasks WHERE id = ?", (task_id,))
            if not row:
                return

            await tx.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            await self.propagator.propagate(row["goal_id"], tx)

        logger.info(f"Deleted task ID: {task_id}")

    # ==================== Sessions ====================

    async def log_focus_session(self, record: FocusSessionRecord) -> FocusSessionRecord:
        """Persist a focus session.

        The goal is taken from the task when not given. A productive session
        against a pending task moves that task to in-progress.
        """
        if record.duration_seconds <= 0:
            raise ValueError(f"Session duration must be positive: {record.duration_seconds}")

        async with self.db.transaction() as tx:
            task_row = None
            if record.task_id is not None:
                task_row = await self._require_task_row(tx, record.task_id)
                if record.goal_id is None:
                    record.goal_id = task_row["goal_id"]

            if record.goal_id is None:
                raise ValueError("Session must belong to a goal or task")
            await self._require_goal_row(tx, record.goal_id)

            record.id = await tx.insert("focus_sessions", record.to_db_dict())

            if (
                task_row is not None
                and record.is_productive
                and task_row["status"] == TaskStatus.PENDING.value
            ):
                await tx.execute(
                    "UPDATE tasks SET status = ? WHERE id = ?",
                    (TaskStatus.IN_PROGRESS.value, record.task_id),
                )
                logger.info(f"Task {record.task_id} marked in progress")

        logger.info(
            f"Logged {record.duration_seconds}s {record.mode.value} session for goal {record.goal_id}"
        )
        return record

    async def record_interval(
        self,
        completion: CycleCompletion,
        task_id: int,
        ended_at: datetime | None = None,
    ) -> FocusSessionRecord | None:
        """Persist one completed Pomodoro interval as it happens.

        A completed work interval moves a pending task to in-progress.
        Returns None when the interval is too short to record.
        """
        duration = round(completion.interval_ms / 1000)
        if duration <= 0:
            return None

        ended_at = ended_at or datetime.now()
        return await self.log_focus_session(
            FocusSessionRecord(
                task_id=task_id,
                start_time=ended_at - timedelta(seconds=duration),
                end_time=ended_at,
                duration_seconds=duration,
                mode=TimerMode.POMODORO,
                pomodoro_cycle=completion.completed_cycle,
            )
        )

    async def record_finalized(
        self,
        result: FinalizedSession,
        task_id: int,
        logged_seconds: int = 0,
    ) -> FocusSessionRecord | None:
        """Persist the outcome of a finished timer against a task.

        ``logged_seconds`` is the time already stored through
        ``record_interval``; only the remainder is recorded. When nothing
        was stored yet, a Pomodoro session that contains any work is stored
        as work, even when it was stopped during a break.

        Returns None when no time is left to record.
        """
        duration = result.duration_seconds - logged_seconds
        if duration <= 0:
            return None

        if logged_seconds == 0:
            cycle = PomodoroCycle.WORK if result.work_seconds > 0 else result.cycle
            started_at = result.started_at
        else:
            cycle = result.cycle
            started_at = result.ended_at - timedelta(seconds=duration)

        return await self.log_focus_session(
            FocusSessionRecord(
                task_id=task_id,
                start_time=started_at,
                end_time=result.ended_at,
                duration_seconds=duration,
                mode=result.mode,
                pomodoro_cycle=cycle,
            )
        )

    async def annotate_session(
        self,
        session_id: int,
        note_accomplished: str | None = None,
        note_next_step: str | None = None,
        vibe: str | None = None,
    ) -> None:
        """Attach post-session notes. Duration and timing stay untouched."""
        async with self.db.transaction() as tx:
            row = await tx.fetch_one("SELECT id FROM focus_sessions WHERE id = ?", (session_id,))
            if not row:
                raise SessionNotFound(session_id)

            await tx.execute(
                """UPDATE focus_sessions SET
                   note_accomplished = COALESCE(?, note_accomplished),
                   note_next_step = COALESCE(?, note_next_step),
                   vibe = COALESCE(?, vibe)
                   WHERE id = ?""",
                (note_accomplished, note_next_step, vibe, session_id),
            )

    async def subtree_sessions(
        self,
        goal_id: int,
        productive_only: bool = True,
    ) -> list[FocusSessionRecord]:
        """Sessions logged against a goal or any of its descendants."""
        query = SUBTREE_CTE + """
            SELECT * FROM focus_sessions
            WHERE goal_id IN (SELECT id FROM subtree)
        """
        if productive_only:
            query += " AND (pomodoro_cycle = 'work' OR mode = 'stopwatch')"
        query += " ORDER BY start_time ASC"

        rows = await self.db.fetch_all(query, (goal_id,))
        return [FocusSessionRecord.from_db_row(row) for row in rows]

    async def list_sessions(self, productive_only: bool = True) -> list[FocusSessionRecord]:
        """All logged sessions, oldest first."""
        query = "SELECT * FROM focus_sessions"
        if productive_only:
            query += " WHERE pomodoro_cycle = 'work' OR mode = 'stopwatch'"
        query += " ORDER BY start_time ASC"

        rows = await self.db.fetch_all(query)
        return [FocusSessionRecord.from_db_row(row) for row in rows]

    # ==================== Pace & Streaks ====================

    async def project_pace(
        self,
        goal_id: int,
        projector: PaceProjector | None = None,
    ) -> list[PacePoint]:
        """Burndown series for a goal using its subtree's sessions."""
        goal = await self.require_goal(goal_id)
        sessions = await self.subtree_sessions(goal_id)
        return (projector or PaceProjector()).project(goal, sessions)

    async def add_pause_period(self, period: PausePeriod) -> int:
        """Record a pause (vacation) period."""
        if period.end_date < period.start_date:
            raise ValueError("Pause period ends before it starts")
        return await self.db.insert(
            "pause_periods",
            {"start_date": period.start_date.isoformat(), "end_date": period.end_date.isoformat()},
        )

    async def list_pause_periods(self) -> list[PausePeriod]:
        rows = await self.db.fetch_all("SELECT * FROM pause_periods ORDER BY start_date")
        return [
            PausePeriod(
                start_date=date.fromisoformat(row["start_date"]),
                end_date=date.fromisoformat(row["end_date"]),
            )
            for row in rows
        ]

    async def get_streak(self, today: date | None = None) -> StreakData:
        """Streak over all productive sessions, honouring pause periods."""
        sessions = await self.list_sessions()
        pauses = await self.list_pause_periods()
        return calculate_streak((s.start_time for s in sessions), pauses, today=today)

    # ==================== Private Helpers ====================

    async def _require_goal_row(self, tx: Transaction, goal_id: int) -> dict[str, Any]:
        row = await tx.fetch_one("SELECT * FROM goals WHERE id = ?", (goal_id,))
        if not row:
            raise GoalNotFound(goal_id)
        return row

    async def _require_task_row(self, tx: Transaction, task_id: int) -> dict[str, Any]:
        row = await tx.fetch_one("SELECT * FROM tasks WHERE id = ?", (task_id,))
        if not row:
            raise TaskNotFound(task_id)
        return row
