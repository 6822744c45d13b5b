"""CLI commands for goalpace using Typer."""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Awaitable, Callable, TypeVar

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from goalpace import __version__
from goalpace.core.config import get_config
from goalpace.focus.driver import TimerDriver
from goalpace.focus.pomodoro import (
    CycleCompletion,
    InvalidStateTransition,
    PomodoroCycle,
    TimerMode,
    TimerStateMachine,
)
from goalpace.goals.estimates import GoalCycleError, GoalNotFound, deep_estimates
from goalpace.goals.manager import GoalManager, TaskNotFound
from goalpace.goals.models import FocusSessionRecord, GoalNode, PausePeriod, TaskNode
from goalpace.goals.pace import PaceStatus, assess_pace
from goalpace.storage.database import Database

T = TypeVar("T")

app = typer.Typer(
    name="goalpace",
    help="Track focus sessions against goals and see whether you are on pace.",
    add_completion=False,
)

console = Console()


def setup_logging(log_level: str, log_file: Path | None = None) -> None:
    """Configure logging for the application."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )

    # Reduce noise from external libraries
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def format_hours(seconds: float) -> str:
    """Format a duration in seconds as hours and minutes."""
    minutes = int(round(seconds / 60))
    hours, mins = divmod(minutes, 60)
    if hours:
        return f"{hours}h {mins:02d}m"
    return f"{mins}m"


def format_clock(ms: float) -> str:
    """Format milliseconds as MM:SS."""
    minutes, seconds = divmod(int(ms // 1000), 60)
    return f"{minutes:02d}:{seconds:02d}"


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"Invalid date: {value} (expected YYYY-MM-DD)")


def _run_with_manager(action: Callable[[GoalManager], Awaitable[T]]) -> T:
    """Open the database, run an action against a GoalManager, close."""
    config = get_config()

    async def runner() -> T:
        db = Database(config.db_path)
        await db.connect()
        try:
            return await action(GoalManager(db))
        finally:
            await db.close()

    try:
        return asyncio.run(runner())
    except (GoalNotFound, TaskNotFound, GoalCycleError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@app.callback()
def main(
    log_level: str = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Log level (DEBUG, INFO, WARNING, ERROR)",
    ),
) -> None:
    """goalpace command line."""
    config = get_config()
    setup_logging(log_level or config.log_level, config.log_file)


@app.command()
def version() -> None:
    """Show version."""
    console.print(f"goalpace {__version__}")


@app.command()
def init() -> None:
    """Create data directories, default config and the database."""
    config = get_config()
    config.ensure_directories()
    if not config.config_file.exists():
        config.save()
        console.print(f"Config written: {config.config_file}")

    async def check(manager: GoalManager) -> bool:
        return await manager.db.check_integrity()

    if _run_with_manager(check):
        console.print(f"[green]Database ready:[/green] {config.db_path}")
    else:
        console.print("[red]Database integrity check failed[/red]")
        raise typer.Exit(1)


@app.command(name="config-show")
def config_show() -> None:
    """Show the effective configuration."""
    config = get_config()
    table = Table(title="Configuration", show_header=True, header_style="bold cyan")
    table.add_column("Setting")
    table.add_column("Value")

    table.add_row("Database", str(config.db_path))
    table.add_row("Log level", config.log_level)
    table.add_row("Work", format_hours(config.pomodoro.work_seconds))
    table.add_row("Short break", format_hours(config.pomodoro.short_break_seconds))
    table.add_row("Long break", format_hours(config.pomodoro.long_break_seconds))
    table.add_row("Cycles until long break", str(config.pomodoro.cycles_until_long_break))
    table.add_row("Auto-start breaks", str(config.pomodoro.auto_start_breaks))
    table.add_row("Auto-start work", str(config.pomodoro.auto_start_work))
    console.print(table)


# ==================== Goals & Tasks ====================


@app.command(name="goal-add")
def goal_add(
    title: str = typer.Argument(..., help="Goal title"),
    parent: int = typer.Option(None, "--parent", "-p", help="Parent goal ID"),
    deadline: str = typer.Option(None, "--deadline", "-d", help="Deadline (YYYY-MM-DD)"),
) -> None:
    """Create a goal."""
    goal = GoalNode(title=title, parent_id=parent, deadline=_parse_date(deadline))
    created = _run_with_manager(lambda m: m.create_goal(goal))
    console.print(f"[green]Created goal {created.id}:[/green] {created.title}")


@app.command(name="goal-move")
def goal_move(
    goal_id: int = typer.Argument(..., help="Goal ID"),
    parent: int = typer.Option(None, "--parent", "-p", help="New parent goal ID (omit for root)"),
) -> None:
    """Move a goal under another parent."""
    _run_with_manager(lambda m: m.move_goal(goal_id, parent))
    console.print(f"[green]Moved goal {goal_id}[/green]")


@app.command(name="goal-delete")
def goal_delete(goal_id: int = typer.Argument(..., help="Goal ID")) -> None:
    """Delete a goal and everything under it."""
    _run_with_manager(lambda m: m.delete_goal(goal_id))
    console.print(f"[yellow]Deleted goal {goal_id}[/yellow]")


@app.command(name="task-add")
def task_add(
    goal_id: int = typer.Argument(..., help="Goal ID"),
    title: str = typer.Argument(..., help="Task title"),
    hours: float = typer.Option(None, "--hours", "-h", help="Estimated hours"),
) -> None:
    """Create a task under a goal."""
    estimate = round(hours * 3600) if hours is not None else None
    task = TaskNode(goal_id=goal_id, title=title, estimated_time_seconds=estimate)
    created = _run_with_manager(lambda m: m.create_task(task))
    console.print(f"[green]Created task {created.id}:[/green] {created.title}")


@app.command(name="task-estimate")
def task_estimate(
    task_id: int = typer.Argument(..., help="Task ID"),
    hours: float = typer.Option(None, "--hours", "-h", help="Estimated hours (omit to clear)"),
) -> None:
    """Set or clear a task's estimate."""
    estimate = round(hours * 3600) if hours is not None else None
    _run_with_manager(lambda m: m.update_task_estimate(task_id, estimate))
    console.print(f"[green]Updated task {task_id}[/green]")


@app.command(name="task-delete")
def task_delete(task_id: int = typer.Argument(..., help="Task ID")) -> None:
    """Delete a task."""
    _run_with_manager(lambda m: m.delete_task(task_id))
    console.print(f"[yellow]Deleted task {task_id}[/yellow]")


@app.command()
def tree() -> None:
    """Show the goal tree with rolled-up estimates."""

    async def load(manager: GoalManager) -> list[GoalNode]:
        return await manager.get_goal_tree()

    roots = _run_with_manager(load)
    if not roots:
        console.print("[dim]No goals yet[/dim]")
        return

    view = Tree("[bold]Goals[/bold]")

    def add(branch: Tree, goal: GoalNode) -> None:
        deadline = f" [dim]due {goal.deadline.date().isoformat()}[/dim]" if goal.deadline else ""
        node = branch.add(
            f"[cyan]{goal.id}[/cyan] {goal.title} - {format_hours(goal.deep_estimate_total_seconds)}{deadline}"
        )
        for child in goal.children:
            add(node, child)

    for root in roots:
        add(view, root)
    console.print(view)


@app.command()
def check() -> None:
    """Compare cached goal estimates against a full recomputation."""

    async def load(manager: GoalManager) -> tuple[list[GoalNode], list[TaskNode]]:
        return await manager.list_goals(), await manager.list_tasks()

    goals, tasks = _run_with_manager(load)
    expected = deep_estimates(goals, tasks)
    stale = [g for g in goals if g.id in expected and expected[g.id] != g.deep_estimate_total_seconds]

    if not stale:
        console.print(f"[green]All {len(goals)} goal estimates are consistent[/green]")
        return

    table = Table(title="Stale Estimates", show_header=True, header_style="bold red")
    table.add_column("Goal")
    table.add_column("Cached")
    table.add_column("Expected")
    for goal in stale:
        table.add_row(goal.title, str(goal.deep_estimate_total_seconds), str(expected[goal.id]))
    console.print(table)
    raise typer.Exit(1)


# ==================== Sessions ====================


@app.command(name="log-session")
def log_session(
    task_id: int = typer.Argument(..., help="Task ID"),
    minutes: float = typer.Option(..., "--minutes", "-m", help="Duration in minutes"),
    start: str = typer.Option(None, "--start", "-s", help="Start time (ISO format, default now)"),
    mode: TimerMode = typer.Option(TimerMode.STOPWATCH, "--mode", case_sensitive=False),
    cycle: PomodoroCycle = typer.Option(PomodoroCycle.WORK, "--cycle", case_sensitive=False),
) -> None:
    """Log a focus session manually."""
    duration = round(minutes * 60)
    started = _parse_date(start) or datetime.now() - timedelta(seconds=duration)
    record = FocusSessionRecord(
        task_id=task_id,
        start_time=started,
        end_time=started + timedelta(seconds=duration),
        duration_seconds=duration,
        mode=mode,
        pomodoro_cycle=cycle,
    )
    logged = _run_with_manager(lambda m: m.log_focus_session(record))
    console.print(f"[green]Logged {format_hours(logged.duration_seconds)} on goal {logged.goal_id}[/green]")


@app.command()
def focus(
    task_id: int = typer.Argument(..., help="Task ID to log against"),
    mode: TimerMode = typer.Option(TimerMode.POMODORO, "--mode", "-m", case_sensitive=False),
    stop_after: float = typer.Option(None, "--stop-after", help="Stop automatically after N minutes"),
    skip_breaks: bool = typer.Option(False, "--skip-breaks", help="Go straight from work to work"),
) -> None:
    """Run a focus timer in the terminal, logging each completed interval.

    An interval that does not start on its own (auto-start disabled in the
    config) is started right away. Press Ctrl+C to finish.
    """
    config = get_config()
    settings = config.pomodoro
    if skip_breaks:
        settings = settings.model_copy(update={"auto_start_breaks": False})

    async def run_focus() -> None:
        db = Database(config.db_path)
        await db.connect()
        manager = GoalManager(db)
        timer = TimerStateMachine(settings)
        driver = TimerDriver(timer, poll_interval=config.poll_interval_seconds)
        logged_seconds = 0

        try:
            try:
                task = await manager.get_task(task_id)
                if task is None:
                    raise TaskNotFound(task_id)

                def on_tick(elapsed_ms: float) -> None:
                    remaining = timer.remaining_ms()
                    shown = elapsed_ms if mode is TimerMode.STOPWATCH else remaining
                    sys.stdout.write(
                        f"\r{timer.cycle.value:<12} {format_clock(shown)} | "
                        f"total {format_clock(timer.total_elapsed_ms())}    "
                    )
                    sys.stdout.flush()

                async def on_cycle_complete(completion: CycleCompletion) -> None:
                    nonlocal logged_seconds

                    if not completion.auto_started:
                        if skip_breaks and completion.next_cycle.is_break:
                            timer.skip_break()
                        else:
                            timer.start_next_interval()

                    console.print(
                        f"\n[green]{completion.completed_cycle.value} complete[/green] "
                        f"-> {timer.cycle.value}"
                    )
                    record = await manager.record_interval(completion, task_id)
                    if record is not None:
                        logged_seconds += record.duration_seconds

                driver.on_tick = on_tick
                driver.on_cycle_complete = on_cycle_complete

                console.print(f"[green]Focusing on:[/green] {task.title} ({mode.value})")
                console.print("Press Ctrl+C to stop\n")

                timer.start(mode)
                await driver.start()

                if stop_after:
                    await asyncio.sleep(stop_after * 60)
                else:
                    while True:
                        await asyncio.sleep(3600)

            except (KeyboardInterrupt, asyncio.CancelledError):
                console.print("\n\n[yellow]Stopping focus session...[/yellow]")
            finally:
                await driver.stop()
                try:
                    result = timer.finalize()
                except InvalidStateTransition:
                    result = None

                if result and result.duration_seconds > 0:
                    await manager.record_finalized(result, task_id, logged_seconds)
                    console.print("\n[bold]Session Summary:[/bold]")
                    console.print(f"  Total time: {format_hours(result.duration_seconds)}")
                    console.print(f"  Pomodoros completed: {result.pomodoros_completed}")
        finally:
            await db.close()

    try:
        asyncio.run(run_focus())
    except KeyboardInterrupt:
        pass
    except (GoalNotFound, TaskNotFound) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


# ==================== Pace & Streaks ====================


@app.command()
def pace(
    goal_id: int = typer.Argument(..., help="Goal ID"),
    every: int = typer.Option(1, "--every", "-e", min=1, help="Show every Nth day"),
) -> None:
    """Show a goal's burndown: ideal versus actual remaining hours."""
    config = get_config()

    async def load(manager: GoalManager) -> tuple[GoalNode, list[Any]]:
        goal = await manager.require_goal(goal_id)
        return goal, await manager.project_pace(goal_id)

    goal, points = _run_with_manager(load)

    if not points:
        console.print(
            f"[dim]Nothing to project for '{goal.title}': it needs a deadline after its "
            f"creation day and a positive estimate[/dim]"
        )
        return

    table = Table(title=f"Pace: {goal.title}", show_header=True, header_style="bold cyan")
    table.add_column("Date")
    table.add_column("Ideal (h)", justify="right")
    table.add_column("Actual (h)", justify="right")

    for i, point in enumerate(points):
        if i % every and i != len(points) - 1:
            continue
        actual = "-" if point.actual_remaining_hours is None else f"{point.actual_remaining_hours:.1f}"
        table.add_row(point.date.isoformat(), f"{point.ideal_remaining_hours:.1f}", actual)
    console.print(table)

    assessment = assess_pace(points, config.pace.on_pace_tolerance_hours)
    colors = {
        PaceStatus.AHEAD: "green",
        PaceStatus.ON_PACE: "blue",
        PaceStatus.BEHIND: "red",
        PaceStatus.NO_DATA: "dim",
    }
    color = colors[assessment.status]
    text = f"[{color}]{assessment.status.value.replace('_', ' ').title()}[/{color}]"
    if assessment.delta_hours is not None:
        text += f" ({assessment.delta_hours:+.1f}h vs plan)"
    console.print(Panel(text, title="Status", border_style=color))


@app.command()
def streak() -> None:
    """Show the current and longest activity streaks."""

    async def load(manager: GoalManager):
        return await manager.get_streak()

    data = _run_with_manager(load)
    today = "[green]yes[/green]" if data.today_in_streak else "[dim]not yet[/dim]"
    console.print(f"Current streak: [bold]{data.current_streak}[/bold] day(s)")
    console.print(f"Longest streak: {data.longest_streak} day(s)")
    console.print(f"Active today: {today}")


@app.command(name="pause-add")
def pause_add(
    start: str = typer.Argument(..., help="First paused day (YYYY-MM-DD)"),
    end: str = typer.Argument(..., help="Last paused day (YYYY-MM-DD)"),
) -> None:
    """Schedule a pause (vacation) that keeps streaks alive."""
    try:
        period = PausePeriod(start_date=date.fromisoformat(start), end_date=date.fromisoformat(end))
    except ValueError as e:
        raise typer.BadParameter(str(e))
    _run_with_manager(lambda m: m.add_pause_period(period))
    console.print(f"[green]Paused {start} to {end}[/green]")


if __name__ == "__main__":
    app()
