"""Clock: the timer abstraction the playback scheduler runs on."""

from __future__ import annotations

import asyncio
import heapq
import itertools
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Clock(ABC):
    """Schedules a callback after a delay given in milliseconds."""

    @abstractmethod
    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay_ms``. The handle cancels it."""


class _VirtualTimer:
    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualClock(Clock):
    """
    Deterministic clock for tests and offline rendering.

    Time only moves when ``advance()`` or ``run()`` is called; due callbacks
    fire in time order, ties broken by scheduling order.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[tuple[float, int, _VirtualTimer]] = []
        self._counter = itertools.count()

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        timer = _VirtualTimer(self.now + max(0.0, delay_ms), callback)
        heapq.heappush(self._queue, (timer.due, next(self._counter), timer))
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def advance(self, delay_ms: float) -> None:
        """Move time forward by ``delay_ms``, firing everything that falls due."""
        target = self.now + delay_ms
        while self._queue and self._queue[0][0] <= target:
            due, _, timer = heapq.heappop(self._queue)
            self.now = due
            if not timer.cancelled:
                timer.callback()
        self.now = target

    def run(self, max_callbacks: int = 1_000_000) -> None:
        """Fire callbacks until nothing is pending.

        Raises:
            RuntimeError: If more than ``max_callbacks`` fire, which means the
                          scheduled work never settles.
        """
        fired = 0
        while self._queue:
            due, _, timer = heapq.heappop(self._queue)
            self.now = due
            if timer.cancelled:
                continue
            fired += 1
            if fired > max_callbacks:
                raise RuntimeError(f"VirtualClock.run exceeded {max_callbacks} callbacks")
            timer.callback()


class AsyncioClock(Clock):
    """Real-time clock backed by an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        return self.loop.call_later(max(0.0, delay_ms) / 1000.0, callback)
