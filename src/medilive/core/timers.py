# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)
"""
Timer primitives used by the realtime coordinator.

All timers are driven by a :py:class:`Scheduler`, which is either backed by the
running asyncio event loop or, in tests, by a manually advanced fake clock.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Protocol for scheduling callbacks on the event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""
        ...

    def time(self) -> float:
        """Return the current monotonic time of the scheduler in seconds."""
        ...


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop.

    If no loop is given the running loop is looked up on first use, so the
    scheduler can be created outside of a coroutine.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(
        self, delay: float, callback: Callable[[], None]
    ) -> asyncio.TimerHandle:
        return self.loop.call_later(delay, callback)

    def time(self) -> float:
        return self.loop.time()


class SingleShotTimer:
    """
    Cancellable single-shot timer.

    Starting the timer while it is pending cancels the previous schedule, so there
    is never more than one pending callback per timer.
    """

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._handle: TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def start(self, delay: float, callback: Callable[[], None]) -> None:
        self.cancel()

        def fire() -> None:
            self._handle = None
            callback()

        self._handle = self._scheduler.call_later(delay, fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class RepeatingTimer:
    """Timer calling a callback every ``interval`` seconds until stopped."""

    def __init__(self, scheduler: Scheduler) -> None:
        self._timer = SingleShotTimer(scheduler)
        self._interval = 0.0
        self._callback: Callable[[], None] | None = None

    @property
    def running(self) -> bool:
        return self._callback is not None

    def start(self, interval: float, callback: Callable[[], None]) -> None:
        if interval <= 0:
            raise ValueError(f"Interval must be positive, got {interval}")
        self._interval = interval
        self._callback = callback
        self._timer.start(interval, self._tick)

    def stop(self) -> None:
        self._callback = None
        self._timer.cancel()

    def _tick(self) -> None:
        callback = self._callback
        if callback is None:
            return
        # Reschedule first so the callback may stop the timer.
        self._timer.start(self._interval, self._tick)
        callback()
