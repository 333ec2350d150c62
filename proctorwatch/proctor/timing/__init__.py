"""Timing primitives"""

from .debounce import DebounceTimer
from .scheduler import AsyncioScheduler, ManualScheduler, Scheduler, ThreadingScheduler, default_scheduler

__all__ = [
    "DebounceTimer",
    "Scheduler",
    "AsyncioScheduler",
    "ThreadingScheduler",
    "ManualScheduler",
    "default_scheduler"
]
