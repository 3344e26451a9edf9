"""Cancellable deferred callbacks for the auto-advance timer."""

import asyncio
import heapq
import itertools
import logging
from abc import ABC, abstractmethod
from typing import Callable

logger = logging.getLogger(__name__)


class ScheduledTask:
    """Handle to a callback waiting to run."""

    def __init__(self, callback: Callable[[], None], due: float) -> None:
        self._callback = callback
        self.due = due
        self.cancelled = False
        self.fired = False
        self._timer_handle: asyncio.TimerHandle | None = None

    def cancel(self) -> None:
        """Prevent the callback from running; a no-op once it has fired."""
        if self.fired or self.cancelled:
            return
        self.cancelled = True
        if self._timer_handle is not None:
            self._timer_handle.cancel()

    @property
    def pending(self) -> bool:
        """Check if the callback is still waiting to run."""
        return not (self.fired or self.cancelled)

    def run(self) -> None:
        """Run the callback unless it was cancelled."""
        if not self.pending:
            return
        self.fired = True
        self._callback()


class Scheduler(ABC):
    """Abstract source of deferred callbacks."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        """Run ``callback`` after ``delay`` seconds."""
        ...


class ManualScheduler(Scheduler):
    """
    Scheduler driven by a virtual clock.

    Nothing runs until ``advance`` moves time forward, so tests and
    synchronous embedders control exactly when timers fire.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[tuple[float, int, ScheduledTask]] = []
        self._sequence = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        """Queue ``callback`` to run once the clock passes ``now + delay``."""
        task = ScheduledTask(callback, self.now + max(delay, 0.0))
        if any(not entry[2].pending for entry in self._queue):
            self._queue = [entry for entry in self._queue if entry[2].pending]
            heapq.heapify(self._queue)
        heapq.heappush(self._queue, (task.due, next(self._sequence), task))
        return task

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward and run every callback that came due.

        Callbacks scheduled while advancing run too if they fall inside the
        window. Returns the number of callbacks that ran.
        """
        target = self.now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, task = heapq.heappop(self._queue)
            self.now = due
            if task.pending:
                task.run()
                ran += 1
        self.now = target
        return ran

    @property
    def pending(self) -> list[ScheduledTask]:
        """Return callbacks still waiting, soonest first."""
        return [task for _, _, task in sorted(self._queue) if task.pending]


class AsyncioScheduler(Scheduler):
    """Scheduler backed by an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        """Arm a loop timer that runs ``callback`` after ``delay`` seconds."""
        loop = self._get_loop()
        task = ScheduledTask(callback, loop.time() + delay)
        task._timer_handle = loop.call_later(delay, task.run)
        logger.debug("timer armed for %.2fs", delay)
        return task
