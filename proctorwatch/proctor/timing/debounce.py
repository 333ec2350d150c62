"""
Debounce Timer - A single cancellable delayed action
"""

import logging
from contextlib import nullcontext
from typing import Callable, Optional

from .scheduler import ScheduledCall, Scheduler

logger = logging.getLogger(__name__)


class DebounceTimer:
    """
    Arms and cancels one delayed action; at most one fire is ever pending.

    Arming while already armed is a no-op and keeps the original deadline,
    so a condition has to hold for the full delay from its first sighting.
    The armed flag is cleared before the action runs, which lets the action
    (or the next observation) arm the timer again.

    When the scheduler fires on another thread, pass the owner's lock so
    the fire path is serialized with arm/cancel.
    """

    def __init__(self, scheduler: Scheduler, name: str = "debounce", lock=None):
        self.scheduler = scheduler
        self.name = name
        self._lock = lock
        self._pending: Optional[ScheduledCall] = None
        self._generation = 0

    @property
    def is_armed(self) -> bool:
        return self._pending is not None

    def arm(self, delay_ms: float, on_fire: Callable[[], None]) -> bool:
        """
        Schedule on_fire after delay_ms unless cancelled first.

        Returns:
            True if the timer was armed by this call, False if it was already pending
        """
        with self._guard():
            if self._pending is not None:
                return False

            self._generation += 1
            generation = self._generation

            def fire():
                with self._guard():
                    # Stale fire from a cancelled arm
                    if self._pending is None or self._generation != generation:
                        return
                    self._pending = None
                    on_fire()

            self._pending = self.scheduler.call_later(delay_ms, fire)
            logger.debug(f"Timer {self.name} armed for {delay_ms}ms")
            return True

    def cancel(self) -> bool:
        """
        Cancel the pending action, if any.

        Returns:
            True if a pending action was cancelled
        """
        with self._guard():
            if self._pending is None:
                return False

            self._pending.cancel()
            self._pending = None
            self._generation += 1
            logger.debug(f"Timer {self.name} cancelled")
            return True

    def _guard(self):
        return self._lock if self._lock is not None else nullcontext()
