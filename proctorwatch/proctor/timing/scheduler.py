"""
Schedulers - Delayed callbacks for debounce timers

Delays are in milliseconds. Three backends:
- AsyncioScheduler: callbacks run on the session's event loop
- ThreadingScheduler: callbacks run on timer threads (needs a locked owner)
- ManualScheduler: virtual clock advanced explicitly (tests, offline replay)
"""

import asyncio
import heapq
import itertools
import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple


class ScheduledCall(ABC):
    """Handle for a pending callback"""

    @abstractmethod
    def cancel(self) -> None:
        pass


class Scheduler(ABC):
    """Runs a callback once after a delay unless the handle is cancelled"""

    @abstractmethod
    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> ScheduledCall:
        pass


class _AsyncioCall(ScheduledCall):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()


class AsyncioScheduler(Scheduler):
    """
    Schedules on an asyncio event loop.

    When no loop is given, the running loop is looked up at each call, so
    a scheduler can be created before the loop that will drive it.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> ScheduledCall:
        loop = self._loop or asyncio.get_running_loop()
        return _AsyncioCall(loop.call_later(delay_ms / 1000.0, callback))


class _ThreadingCall(ScheduledCall):
    def __init__(self, timer: threading.Timer):
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class ThreadingScheduler(Scheduler):
    """Schedules on daemon `threading.Timer` threads"""

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> ScheduledCall:
        timer = threading.Timer(delay_ms / 1000.0, callback)
        timer.daemon = True
        timer.start()
        return _ThreadingCall(timer)


class _ManualCall(ScheduledCall):
    def __init__(self, due_ms: float, callback: Callable[[], None]):
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """
    Virtual millisecond clock.

    Nothing fires until `advance()` moves the clock to or past a call's due
    time. Calls due at the same instant fire in scheduling order.
    """

    def __init__(self, start_ms: float = 0):
        self.now_ms = start_ms
        self._queue: List[Tuple[float, int, _ManualCall]] = []
        self._counter = itertools.count()

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> ScheduledCall:
        call = _ManualCall(self.now_ms + delay_ms, callback)
        heapq.heappush(self._queue, (call.due_ms, next(self._counter), call))
        return call

    @property
    def pending(self) -> int:
        return sum(1 for _, _, call in self._queue if not call.cancelled)

    def advance(self, delta_ms: float) -> int:
        """
        Move the clock forward and run every call that became due.

        Returns:
            Number of callbacks that ran
        """
        target = self.now_ms + delta_ms
        fired = 0

        while self._queue and self._queue[0][0] <= target:
            due_ms, _, call = heapq.heappop(self._queue)
            if call.cancelled:
                continue
            self.now_ms = due_ms
            call.callback()
            fired += 1

        self.now_ms = target
        return fired


def default_scheduler() -> Scheduler:
    """
    Scheduler for an owner that was not given one.

    Binds to the running event loop when there is one; otherwise timers
    run on threads, so the owner must guard its fire path with a lock.
    """
    try:
        return AsyncioScheduler(asyncio.get_running_loop())
    except RuntimeError:
        return ThreadingScheduler()
