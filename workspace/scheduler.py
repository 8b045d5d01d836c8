"""
Cancellable scheduled tasks for debounced (quiet-period) work.

Two schedulers share one interface, ``call_later(delay_ms, callback)``
returning a handle with ``cancel()``:

- ManualScheduler - virtual clock advanced explicitly; used by tests and by
  hosts that drive time themselves.
- AsyncioScheduler - delegates to an asyncio event loop.

Debouncer keys tasks by (graph id, concern): every trigger cancels and
reschedules, so the callback runs once per settled burst.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from typing import Callable, Hashable, Optional, Protocol

logger = logging.getLogger("graphdeck")


class TaskHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TaskHandle: ...


class ScheduledTask:
    """A pending callback on a ManualScheduler."""

    __slots__ = ("due", "callback", "cancelled")

    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic scheduler driven by ``advance()``.

    Tasks due at the same instant fire in scheduling order.
    """

    def __init__(self):
        self.now: float = 0.0
        self._queue: list[tuple[float, int, ScheduledTask]] = []
        self._seq = itertools.count()

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> ScheduledTask:
        task = ScheduledTask(self.now + delay_ms, callback)
        heapq.heappush(self._queue, (task.due, next(self._seq), task))
        return task

    def advance(self, ms: float) -> int:
        """Move the clock forward by *ms*, firing every task that falls due.

        Returns:
            Number of callbacks executed.
        """
        target = self.now + ms
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, task = heapq.heappop(self._queue)
            self.now = due
            if task.cancelled:
                continue
            task.cancelled = True
            task.callback()
            fired += 1
        self.now = target
        return fired

    def pending(self) -> int:
        """Number of scheduled, not-yet-cancelled tasks."""
        return sum(1 for _, _, task in self._queue if not task.cancelled)


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop (``loop.call_later``).

    Without an explicit *loop* the running loop is picked up on first use,
    so the scheduler must then be used from inside a coroutine or callback.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(delay_ms / 1000.0, callback)


class Debouncer:
    """One cancellable task per key; re-triggering restarts the quiet period."""

    def __init__(self, scheduler: Scheduler):
        self._scheduler = scheduler
        self._tasks: dict[Hashable, TaskHandle] = {}

    def trigger(self, key: Hashable, delay_ms: float, callback: Callable[[], None]) -> None:
        previous = self._tasks.pop(key, None)
        if previous is not None:
            previous.cancel()

        def fire():
            # Only the most recent task for the key may run
            if self._tasks.get(key) is handle:
                del self._tasks[key]
                callback()

        handle = self._scheduler.call_later(delay_ms, fire)
        self._tasks[key] = handle

    def cancel(self, key: Hashable) -> bool:
        """Cancel the pending task for *key*. Returns True if one existed."""
        handle = self._tasks.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_matching(self, predicate: Callable[[Hashable], bool]) -> int:
        """Cancel every pending task whose key satisfies *predicate*."""
        keys = [key for key in self._tasks if predicate(key)]
        for key in keys:
            self.cancel(key)
        if keys:
            logger.debug(f"Cancelled {len(keys)} pending task(s)")
        return len(keys)

    def is_pending(self, key: Hashable) -> bool:
        return key in self._tasks

    def keys(self) -> list:
        return list(self._tasks)
