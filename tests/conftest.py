"""Shared fixtures: a controllable clock and a throwaway database."""

from __future__ import annotations

import pytest
import pytest_asyncio

from goalpace.core.config import PomodoroSettings
from goalpace.focus.pomodoro import TimerStateMachine
from goalpace.goals.manager import GoalManager
from goalpace.storage.database import Database


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start_ms: float = 1_700_000_000_000.0):
        self.current_ms = start_ms

    def now_ms(self) -> float:
        return self.current_ms

    def advance(self, seconds: float = 0.0, ms: float = 0.0) -> None:
        self.current_ms += seconds * 1000 + ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> PomodoroSettings:
    return PomodoroSettings(
        work_seconds=25 * 60,
        short_break_seconds=5 * 60,
        long_break_seconds=15 * 60,
        cycles_until_long_break=4,
    )


@pytest.fixture
def timer(settings, clock) -> TimerStateMachine:
    return TimerStateMachine(settings, clock=clock)


@pytest_asyncio.fixture
async def db(tmp_path):
    database = Database(tmp_path / "goalpace.db")
    await database.connect()
    yield database
    await database.close()


@pytest.fixture
def manager(db) -> GoalManager:
    return GoalManager(db)
