"""Tests for the asyncio timer driver."""

import asyncio

import pytest

from goalpace.focus.driver import TimerDriver
from goalpace.focus.pomodoro import PomodoroCycle, TimerMode, TimerStatus


def test_rejects_non_positive_interval(timer):
    with pytest.raises(ValueError):
        TimerDriver(timer, poll_interval=0)


async def test_tick_reports_elapsed(timer, clock):
    driver = TimerDriver(timer)
    ticks = []
    driver.on_tick = ticks.append
    timer.start(TimerMode.STOPWATCH)
    clock.advance(seconds=12)

    assert await driver.tick() is None
    assert ticks == [12_000]


async def test_tick_awaits_async_completion_handler(timer, clock):
    driver = TimerDriver(timer)
    completions = []

    async def handle(completion):
        await asyncio.sleep(0)
        completions.append(completion)

    driver.on_cycle_complete = handle
    timer.start(TimerMode.POMODORO)
    clock.advance(seconds=25 * 60)

    completion = await driver.tick()
    await driver.tick()

    assert completion.completed_cycle is PomodoroCycle.WORK
    assert completions == [completion]


async def test_tick_survives_failing_callbacks(timer, clock):
    driver = TimerDriver(timer)

    def broken(_):
        raise RuntimeError("display gone")

    driver.on_tick = broken
    driver.on_cycle_complete = broken
    timer.start(TimerMode.POMODORO)
    clock.advance(seconds=25 * 60)

    completion = await driver.tick()

    assert completion is not None
    assert timer.cycle is PomodoroCycle.SHORT_BREAK


async def test_start_and_stop(timer):
    driver = TimerDriver(timer, poll_interval=0.01)
    ticks = []
    driver.on_tick = ticks.append
    timer.start(TimerMode.STOPWATCH)

    await driver.start()
    await driver.start()  # already running, no second task
    assert driver.is_running
    await asyncio.sleep(0.05)
    await driver.stop()

    assert not driver.is_running
    assert len(ticks) >= 1


async def test_loop_exits_after_finalize(timer):
    driver = TimerDriver(timer, poll_interval=0.01)
    timer.start(TimerMode.STOPWATCH)
    await driver.start()

    timer.finalize()
    await asyncio.sleep(0.05)

    assert timer.status is TimerStatus.FINALIZED
    assert not driver.is_running
    await driver.stop()
