"""Tests for the command line interface."""

import asyncio

import pytest
from typer.testing import CliRunner

from goalpace.cli.main import app, format_clock, format_hours
from goalpace.core.config import get_config
from goalpace.goals.manager import GoalManager, TaskNotFound
from goalpace.goals.models import TaskStatus
from goalpace.storage.database import Database

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("GOALPACE_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("GOALPACE_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("GOALPACE_CONFIG_DIR", str(tmp_path / "config"))
    get_config.cache_clear()
    yield tmp_path
    get_config.cache_clear()


def invoke(*args):
    return runner.invoke(app, ["--log-level", "WARNING", *args])


def test_format_helpers():
    assert format_hours(5400) == "1h 30m"
    assert format_hours(600) == "10m"
    assert format_clock(125_000) == "02:05"


def test_version():
    result = invoke("version")

    assert result.exit_code == 0
    assert "goalpace" in result.output


def test_init_creates_database(isolated_home):
    result = invoke("init")

    assert result.exit_code == 0
    assert (isolated_home / "data" / "goalpace.db").exists()
    assert (isolated_home / "config" / "config.yaml").exists()


def test_goal_and_task_roll_up():
    assert invoke("goal-add", "Thesis", "--deadline", "2030-06-01").exit_code == 0
    assert invoke("goal-add", "Chapter 1", "--parent", "1").exit_code == 0
    assert invoke("task-add", "2", "Outline", "--hours", "2.5").exit_code == 0

    tree = invoke("tree")
    check = invoke("check")

    assert tree.exit_code == 0
    assert "Thesis" in tree.output
    assert "2h 30m" in tree.output
    assert check.exit_code == 0
    assert "consistent" in check.output


def test_unknown_goal_is_reported():
    result = invoke("task-add", "99", "Nowhere")

    assert result.exit_code == 1
    assert "Goal not found: 99" in result.output


def test_log_session_and_streak():
    invoke("goal-add", "Fitness")
    invoke("task-add", "1", "Run", "--hours", "10")

    logged = invoke("log-session", "1", "--minutes", "30")
    streak = invoke("streak")

    assert logged.exit_code == 0
    assert "30m" in logged.output
    assert streak.exit_code == 0
    assert "Current streak: 1" in streak.output


def test_log_session_rejects_zero_minutes():
    invoke("goal-add", "Fitness")
    invoke("task-add", "1", "Run")

    result = invoke("log-session", "1", "--minutes", "0")

    assert result.exit_code == 1


def test_pace_without_deadline():
    invoke("goal-add", "Someday")

    result = invoke("pace", "1")

    assert result.exit_code == 0
    assert "Nothing to project" in result.output


def test_pace_table():
    invoke("goal-add", "Launch", "--deadline", "2099-01-01")
    invoke("task-add", "1", "Build", "--hours", "100")

    result = invoke("pace", "1", "--every", "365")

    assert result.exit_code == 0
    assert "2099-01-01" in result.output
    assert "Status" in result.output


def test_move_goal_under_descendant_fails():
    invoke("goal-add", "Root")
    invoke("goal-add", "Child", "--parent", "1")

    result = invoke("goal-move", "1", "--parent", "2")

    assert result.exit_code == 1
    assert "descendant" in result.output


def test_focus_on_unknown_task():
    result = invoke("focus", "7", "--stop-after", "0.01")

    assert result.exit_code == 1
    assert "Task not found: 7" in result.output


def test_pause_add_rejects_bad_date():
    result = invoke("pause-add", "2024-13-01", "2024-12-02")

    assert result.exit_code != 0


# ---- Live focus sessions ----

def stored_state(home):
    """Sessions and the first task as the focus command left them."""

    async def load():
        db = Database(home / "data" / "goalpace.db")
        await db.connect()
        try:
            manager = GoalManager(db)
            return await manager.list_sessions(productive_only=False), await manager.get_task(1)
        finally:
            await db.close()

    return asyncio.run(load())


@pytest.fixture
def fast_pomodoro(monkeypatch):
    monkeypatch.setenv("GOALPACE_POMODORO__WORK_SECONDS", "1")
    monkeypatch.setenv("GOALPACE_POMODORO__SHORT_BREAK_SECONDS", "1")
    monkeypatch.setenv("GOALPACE_POLL_INTERVAL_SECONDS", "0.05")
    invoke("goal-add", "Thesis")
    invoke("task-add", "1", "Outline", "--hours", "2")


def test_focus_marks_task_when_first_work_interval_completes(fast_pomodoro, isolated_home, monkeypatch):
    status_at_finalize = []
    record_finalized = GoalManager.record_finalized

    async def capture_status(self, result, task_id, logged_seconds=0):
        status_at_finalize.append((await self.get_task(task_id)).status)
        return await record_finalized(self, result, task_id, logged_seconds)

    monkeypatch.setattr(GoalManager, "record_finalized", capture_status)

    result = invoke("focus", "1", "--stop-after", "0.04")
    sessions, task = stored_state(isolated_home)

    assert result.exit_code == 0
    assert status_at_finalize == [TaskStatus.IN_PROGRESS]
    assert task.status is TaskStatus.IN_PROGRESS
    assert "work" in [s.pomodoro_cycle.value for s in sessions]
    assert all(s.duration_seconds >= 1 for s in sessions)


def test_focus_starts_break_when_auto_start_disabled(fast_pomodoro, isolated_home, monkeypatch):
    monkeypatch.setenv("GOALPACE_POMODORO__AUTO_START_BREAKS", "false")
    get_config.cache_clear()

    result = invoke("focus", "1", "--stop-after", "0.05")
    sessions, _ = stored_state(isolated_home)

    assert result.exit_code == 0
    assert "short_break" in [s.pomodoro_cycle.value for s in sessions]
    assert sum(s.duration_seconds for s in sessions) >= 2


def test_focus_skip_breaks(fast_pomodoro, isolated_home):
    result = invoke("focus", "1", "--stop-after", "0.05", "--skip-breaks")
    sessions, _ = stored_state(isolated_home)

    assert result.exit_code == 0
    cycles = [s.pomodoro_cycle.value for s in sessions]
    assert cycles.count("work") >= 2
    assert "short_break" not in cycles


def test_focus_closes_database_when_final_record_fails(fast_pomodoro, monkeypatch):
    closed = []
    close = Database.close

    async def track_close(self):
        closed.append(self.db_path)
        await close(self)

    async def task_gone(self, result, task_id, logged_seconds=0):
        raise TaskNotFound(task_id)

    monkeypatch.setattr(Database, "close", track_close)
    monkeypatch.setattr(GoalManager, "record_finalized", task_gone)

    result = invoke("focus", "1", "--mode", "stopwatch", "--stop-after", "0.01")

    assert result.exit_code == 1
    assert "Task not found: 1" in result.output
    assert len(closed) == 1
