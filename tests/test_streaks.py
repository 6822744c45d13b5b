"""Tests for activity streaks."""

from datetime import date, datetime

from goalpace.goals.models import FocusSessionRecord, PausePeriod
from goalpace.goals.streaks import StreakData, calculate_streak, calculate_today_focus


def days(*numbers):
    return [datetime(2024, 1, n, 10) for n in numbers]


def test_no_sessions():
    assert calculate_streak([], today=date(2024, 1, 5)) == StreakData()


def test_consecutive_days_through_today():
    streak = calculate_streak(days(1, 2, 3), today=date(2024, 1, 3))

    assert streak == StreakData(current_streak=3, longest_streak=3, today_in_streak=True)


def test_multiple_sessions_per_day_count_once():
    starts = days(1, 1, 2) + [datetime(2024, 1, 2, 23, 59)]

    assert calculate_streak(starts, today=date(2024, 1, 2)).current_streak == 2


def test_gap_breaks_streak():
    streak = calculate_streak(days(1, 2, 3, 6, 7), today=date(2024, 1, 7))

    assert streak.current_streak == 2
    assert streak.longest_streak == 3


def test_paused_gap_keeps_streak():
    vacation = PausePeriod(start_date=date(2024, 1, 4), end_date=date(2024, 1, 5))

    streak = calculate_streak(days(1, 2, 3, 6, 7), [vacation], today=date(2024, 1, 7))

    assert streak.current_streak == 5
    assert streak.longest_streak == 5


def test_yesterday_still_counts():
    streak = calculate_streak(days(4, 5), today=date(2024, 1, 6))

    assert streak.current_streak == 2
    assert not streak.today_in_streak


def test_missed_day_resets_current_streak():
    streak = calculate_streak(days(4, 5), today=date(2024, 1, 8))

    assert streak.current_streak == 0
    assert streak.longest_streak == 2


def test_ongoing_pause_keeps_current_streak():
    vacation = PausePeriod(start_date=date(2024, 1, 6), end_date=date(2024, 1, 10))

    streak = calculate_streak(days(4, 5), [vacation], today=date(2024, 1, 9))

    assert streak.current_streak == 2


def test_today_focus_only_counts_today():
    sessions = [
        FocusSessionRecord(start_time=datetime(2024, 1, 5, 9), duration_seconds=1500),
        FocusSessionRecord(start_time=datetime(2024, 1, 5, 14), duration_seconds=600),
        FocusSessionRecord(start_time=datetime(2024, 1, 4, 23), duration_seconds=3600),
    ]

    assert calculate_today_focus(sessions, today=date(2024, 1, 5)) == 2100
