"""Goal hierarchy: estimate roll-up, pace projection and streaks."""

from goalpace.goals.estimates import EstimatePropagator, GoalCycleError, GoalNotFound, deep_estimates
from goalpace.goals.manager import GoalManager, SessionNotFound, TaskNotFound
from goalpace.goals.models import (
    FocusSessionRecord,
    GoalNode,
    PausePeriod,
    TaskNode,
    TaskStatus,
    build_goal_tree,
)
from goalpace.goals.pace import PaceAssessment, PacePoint, PaceProjector, PaceStatus, assess_pace
from goalpace.goals.streaks import StreakData, calculate_streak, calculate_today_focus

__all__ = [
    "EstimatePropagator",
    "GoalCycleError",
    "GoalNotFound",
    "deep_estimates",
    "GoalManager",
    "SessionNotFound",
    "TaskNotFound",
    "FocusSessionRecord",
    "GoalNode",
    "PausePeriod",
    "TaskNode",
    "TaskStatus",
    "build_goal_tree",
    "PaceAssessment",
    "PacePoint",
    "PaceProjector",
    "PaceStatus",
    "assess_pace",
    "StreakData",
    "calculate_streak",
    "calculate_today_focus",
]
