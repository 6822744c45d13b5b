"""Tests for the burndown pace projection."""

from datetime import date, datetime, timedelta, timezone

import pytest

from goalpace.goals.models import FocusSessionRecord, GoalNode
from goalpace.goals.pace import (
    PacePoint,
    PaceProjector,
    PaceStatus,
    assess_pace,
    bucket_hours_by_day,
    start_of_day,
)

TEN_HOURS = 36000


def make_goal(estimate=TEN_HOURS, created=datetime(2024, 1, 1, 9, 30), deadline=datetime(2024, 1, 11, 17)):
    return GoalNode(id=1, title="ship", created_at=created, deadline=deadline, deep_estimate_total_seconds=estimate)


def session(start, hours):
    return FocusSessionRecord(goal_id=1, start_time=start, duration_seconds=int(hours * 3600))


def projector_at(day):
    return PaceProjector(today=lambda: day)


def test_ideal_line_is_linear():
    points = projector_at(date(2024, 1, 1)).project(make_goal(), [])

    assert len(points) == 11
    assert points[0].date == date(2024, 1, 1)
    assert points[-1].date == date(2024, 1, 11)
    assert points[0].ideal_remaining_hours == 10.0
    assert points[-1].ideal_remaining_hours == 0.0
    for prev, point in zip(points, points[1:]):
        assert prev.ideal_remaining_hours - point.ideal_remaining_hours == pytest.approx(1.0)


@pytest.mark.parametrize(
    "goal",
    [
        make_goal(deadline=None),
        make_goal(estimate=0),
        make_goal(estimate=-3600),
        make_goal(deadline=datetime(2024, 1, 1, 23, 59)),
        make_goal(deadline=datetime(2023, 12, 25)),
    ],
    ids=["no-deadline", "zero-estimate", "negative-estimate", "same-day", "deadline-before-creation"],
)
def test_empty_projection(goal):
    assert projector_at(date(2024, 1, 5)).project(goal, [session(datetime(2024, 1, 2), 1)]) == []


def test_explicit_estimate_overrides_goal_total():
    points = projector_at(date(2024, 1, 1)).project(make_goal(estimate=0), [], estimated_seconds=7200)

    assert points[0].ideal_remaining_hours == 2.0


def test_future_days_have_no_actual_value():
    sessions = [session(datetime(2024, 1, 2, 10), 2), session(datetime(2024, 1, 8, 10), 3)]

    points = projector_at(date(2024, 1, 4)).project(make_goal(), sessions)

    actual = [p.actual_remaining_hours for p in points]
    assert actual[:4] == [10.0, 8.0, 8.0, 8.0]
    assert actual[4:] == [None] * 7


def test_actual_accumulates_and_floors_at_zero():
    sessions = [
        session(datetime(2024, 1, 1, 8), 4),
        session(datetime(2024, 1, 1, 20), 1),
        session(datetime(2024, 1, 3, 9), 8),
    ]

    points = projector_at(date(2024, 1, 20)).project(make_goal(), sessions)

    assert [p.actual_remaining_hours for p in points[:4]] == [5.0, 5.0, 0.0, 0.0]
    assert all(p.actual_remaining_hours is not None for p in points)


def test_session_counts_in_one_day_only():
    # Starts just before midnight and runs into the next day
    late = session(datetime(2024, 1, 2, 23, 30), 2)

    points = projector_at(date(2024, 1, 11)).project(make_goal(), [late])

    assert points[0].actual_remaining_hours == 10.0
    assert points[1].actual_remaining_hours == 8.0
    assert points[2].actual_remaining_hours == 8.0
    assert bucket_hours_by_day([late]) == {date(2024, 1, 2): 2.0}


def test_sessions_before_creation_are_ignored():
    early = session(datetime(2023, 12, 31, 12), 3)

    points = projector_at(date(2024, 1, 11)).project(make_goal(), [early])

    assert points[-1].actual_remaining_hours == 10.0


def test_projection_is_repeatable():
    projector = projector_at(date(2024, 1, 6))
    goal = make_goal()
    sessions = [session(datetime(2024, 1, d, 9), 1.5) for d in range(1, 6)]

    assert projector.project(goal, sessions) == projector.project(goal, sessions)


def test_start_of_day_uses_local_time_for_aware_values():
    aware = datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)

    assert start_of_day(aware) == aware.astimezone().date()
    assert start_of_day(datetime(2024, 3, 5, 23, 59)) == date(2024, 3, 5)
    assert start_of_day(date(2024, 3, 5)) == date(2024, 3, 5)


# ---- Assessment ----

def test_assess_pace_statuses():
    day = date(2024, 1, 5)
    future = PacePoint(date=day + timedelta(days=1), ideal_remaining_hours=5.0, actual_remaining_hours=None)

    behind = assess_pace([PacePoint(day, 6.0, 8.0), future])
    ahead = assess_pace([PacePoint(day, 6.0, 4.0), future])
    on_pace = assess_pace([PacePoint(day, 6.0, 6.25), future])

    assert behind.status is PaceStatus.BEHIND
    assert behind.delta_hours == 2.0
    assert behind.date == day
    assert ahead.status is PaceStatus.AHEAD
    assert on_pace.status is PaceStatus.ON_PACE


def test_assess_pace_without_actual_data():
    assessment = assess_pace([])

    assert assessment.status is PaceStatus.NO_DATA
    assert assessment.delta_hours is None
