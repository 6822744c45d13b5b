"""Roll-up of task estimates into every ancestor goal."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable

from goalpace.goals.models import GoalNode, TaskNode
from goalpace.storage.database import Transaction

logger = logging.getLogger(__name__)


class GoalNotFound(LookupError):
    """A goal that the caller requires does not exist."""

    def __init__(self, goal_id: int):
        self.goal_id = goal_id
        super().__init__(f"Goal not found: {goal_id}")


class GoalCycleError(ValueError):
    """A goal's parent chain loops back on itself."""

    def __init__(self, goal_id: int, chain: list[int]):
        self.goal_id = goal_id
        self.chain = chain
        super().__init__(f"Goal {goal_id} appears twice in its ancestor chain: {chain}")


def compute_deep_estimate(
    task_estimates: Iterable[int | None],
    sub_goal_totals: Iterable[int],
) -> int:
    """Sum direct task estimates (missing counts as zero) and sub-goal totals."""
    return sum(estimate or 0 for estimate in task_estimates) + sum(sub_goal_totals)


class EstimatePropagator:
    """Keeps ``deep_estimate_total_seconds`` consistent along an ancestor chain.

    Call ``propagate`` with the goal whose direct tasks changed, inside the
    same transaction as that change. The walk goes strictly upward and
    rewrites every ancestor up to the root. Each total is recomputed from
    the children's current values, so re-running it is harmless and two
    interleaved runs converge.
    """

    async def propagate(self, origin_goal_id: int, tx: Transaction) -> list[int]:
        """Recompute the origin goal and all its ancestors.

        Args:
            origin_goal_id: Goal whose direct task estimates changed
            tx: Open transaction shared with the triggering mutation

        Returns:
            IDs of the goals that were rewritten, origin first
        """
        updated: list[int] = []
        current_id: int | None = origin_goal_id

        while current_id is not None:
            if current_id in updated:
                raise GoalCycleError(current_id, updated)

            goal = await tx.fetch_one(
                "SELECT id, parent_id FROM goals WHERE id = ?", (current_id,)
            )
            if not goal:
                # Deleted concurrently or never existed, nothing left to walk
                logger.debug(f"Estimate walk stopped at missing goal {current_id}")
                break

            task_rows = await tx.fetch_all(
                "SELECT estimated_time_seconds FROM tasks WHERE goal_id = ?",
                (current_id,),
            )
            sub_goal_rows = await tx.fetch_all(
                "SELECT deep_estimate_total_seconds FROM goals WHERE parent_id = ?",
                (current_id,),
            )

            new_total = compute_deep_estimate(
                (row["estimated_time_seconds"] for row in task_rows),
                (row["deep_estimate_total_seconds"] or 0 for row in sub_goal_rows),
            )

            await tx.execute(
                "UPDATE goals SET deep_estimate_total_seconds = ? WHERE id = ?",
                (new_total, current_id),
            )
            logger.debug(f"Goal {current_id} deep estimate = {new_total}s")

            updated.append(current_id)
            current_id = goal["parent_id"]

        logger.info(f"Propagated estimates from goal {origin_goal_id} through {len(updated)} goal(s)")
        return updated


def deep_estimates(goals: Iterable[GoalNode], tasks: Iterable[TaskNode]) -> dict[int, int]:
    """Compute every goal's deep estimate from scratch.

    Used to audit the cached values; iterative post-order so deep trees do
    not hit the recursion limit.
    """
    goals = [goal for goal in goals if goal.id is not None]
    known = {goal.id for goal in goals}

    direct: dict[int, int] = defaultdict(int)
    for task in tasks:
        if task.goal_id in known:
            direct[task.goal_id] += task.estimated_time_seconds or 0

    children: dict[int, list[int]] = defaultdict(list)
    roots = []
    for goal in goals:
        if goal.parent_id in known and goal.parent_id != goal.id:
            children[goal.parent_id].append(goal.id)
        else:
            roots.append(goal.id)

    totals: dict[int, int] = {}
    for root in roots:
        stack = [(root, False)]
        while stack:
            goal_id, expanded = stack.pop()
            if expanded:
                totals[goal_id] = direct[goal_id] + sum(totals[c] for c in children[goal_id])
            elif goal_id not in totals:
                stack.append((goal_id, True))
                stack.extend((child, False) for child in children[goal_id])
    return totals
