"""Timer scheduling for enforcement attempts.

The engine never sleeps itself; it hands each rung of its retry ladder to a
scheduler. The asyncio implementation runs on the daemon's event loop, and
tests substitute a manual scheduler that fires callbacks on demand.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)

AttemptCallback = Callable[[], Awaitable[object]]


class Scheduler(ABC):
    """Runs coroutine callbacks after a delay."""

    @abstractmethod
    def call_later(self, delay: float, callback: AttemptCallback) -> None:
        """Schedule ``callback()`` to be awaited after ``delay`` seconds."""

    def cancel_all(self) -> None:
        """Drop every pending callback."""


class AsyncioScheduler(Scheduler):
    """Scheduler backed by ``loop.call_later`` on the running event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._handles: Set[asyncio.TimerHandle] = set()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, callback: AttemptCallback) -> None:
        handle: Optional[asyncio.TimerHandle] = None

        def fire() -> None:
            self._handles.discard(handle)
            task = self.loop.create_task(self._run(callback))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        handle = self.loop.call_later(max(delay, 0.0), fire)
        self._handles.add(handle)

    @staticmethod
    async def _run(callback: AttemptCallback) -> None:
        try:
            await callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Callbacks handle their own errors; this keeps the loop alive regardless
            logger.error(f"Scheduled callback failed: {e}", exc_info=True)

    @property
    def pending(self) -> int:
        return len(self._handles) + len(self._tasks)

    def cancel_all(self) -> None:
        for handle in list(self._handles):
            handle.cancel()
        for task in list(self._tasks):
            task.cancel()
        self._handles.clear()
        self._tasks.clear()


class ManualScheduler(Scheduler):
    """Deterministic scheduler with a virtual clock.

    Nothing runs until ``advance()`` or ``run_all()`` is awaited; callbacks
    fire in order of their due time.
    """

    def __init__(self):
        self.now = 0.0
        self._queue: List[Tuple[float, int, AttemptCallback]] = []
        self._seq = 0

    def call_later(self, delay: float, callback: AttemptCallback) -> None:
        self._queue.append((self.now + max(delay, 0.0), self._seq, callback))
        self._seq += 1
        self._queue.sort(key=lambda item: (item[0], item[1]))

    @property
    def delays(self) -> List[float]:
        """Due times of pending callbacks relative to the current clock."""
        return [due - self.now for due, _, _ in self._queue]

    @property
    def pending(self) -> int:
        return len(self._queue)

    async def advance(self, seconds: float) -> int:
        """Move the clock forward, firing every callback that comes due."""
        target = self.now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, callback = self._queue.pop(0)
            self.now = due
            await callback()
            fired += 1
        self.now = target
        return fired

    async def run_all(self) -> int:
        fired = 0
        while self._queue:
            due, _, callback = self._queue.pop(0)
            self.now = due
            await callback()
            fired += 1
        return fired

    def cancel_all(self) -> None:
        self._queue.clear()
