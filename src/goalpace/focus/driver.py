"""Asyncio tick loop that drives a timer's display refresh and auto-completion."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from goalpace.focus.pomodoro import CycleCompletion, TimerStateMachine, TimerStatus

logger = logging.getLogger(__name__)


class TimerDriver:
    """Polls a TimerStateMachine on a fixed cadence.

    The driver owns no timing state of its own; cancelling it (or simply
    dropping the timer) leaves nothing behind.

    Usage:
        driver = TimerDriver(timer, poll_interval=0.5)
        driver.on_tick = lambda elapsed_ms: render(elapsed_ms)
        driver.on_cycle_complete = handle_completion
        await driver.start()
        ...
        await driver.stop()
    """

    def __init__(self, timer: TimerStateMachine, poll_interval: float = 0.5):
        if poll_interval <= 0:
            raise ValueError(f"Invalid poll interval: {poll_interval}")
        self.timer = timer
        self.poll_interval = poll_interval
        self._task: asyncio.Task | None = None

        # Callbacks
        self.on_tick: Callable[[float], None] | None = None
        self.on_cycle_complete: Callable[[CycleCompletion], Awaitable[None] | None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start polling."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._tick_loop())
        logger.debug("Timer driver started")

    async def stop(self) -> None:
        """Stop polling."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.debug("Timer driver stopped")

    async def tick(self) -> CycleCompletion | None:
        """Run one poll: refresh the display and fire any interval completion."""
        if self.on_tick:
            try:
                self.on_tick(self.timer.current_elapsed_ms())
            except Exception as e:
                logger.error(f"Error in on_tick callback: {e}")

        completion = self.timer.check_for_auto_completion()
        if completion and self.on_cycle_complete:
            try:
                result = self.on_cycle_complete(completion)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Error in on_cycle_complete callback: {e}")
        return completion

    async def _tick_loop(self) -> None:
        """Main polling loop."""
        while self.timer.status is not TimerStatus.FINALIZED:
            await asyncio.sleep(self.poll_interval)
            await self.tick()
