"""
Tests for DebounceTimer and the schedulers behind it
"""

import asyncio
import threading

from proctorwatch.proctor.timing import AsyncioScheduler, DebounceTimer, ManualScheduler, ThreadingScheduler


class TestDebounceTimer:
    """Tests for arm/cancel semantics on a virtual clock"""

    def test_fires_after_delay(self, scheduler):
        fired = []
        timer = DebounceTimer(scheduler)

        assert timer.arm(100, lambda: fired.append(scheduler.now_ms)) is True
        assert timer.is_armed

        scheduler.advance(99)
        assert fired == []

        scheduler.advance(1)
        assert fired == [100]
        assert not timer.is_armed

    def test_double_arm_fires_once_at_first_deadline(self, scheduler):
        """Re-arming while pending keeps the original deadline"""
        fired = []
        timer = DebounceTimer(scheduler)

        timer.arm(100, lambda: fired.append(scheduler.now_ms))
        scheduler.advance(60)
        assert timer.arm(100, lambda: fired.append(-1)) is False

        scheduler.advance(40)
        assert fired == [100]

        scheduler.advance(1000)
        assert fired == [100]

    def test_cancel_before_fire(self, scheduler):
        fired = []
        timer = DebounceTimer(scheduler)

        timer.arm(100, lambda: fired.append(True))
        assert timer.cancel() is True
        assert not timer.is_armed

        scheduler.advance(500)
        assert fired == []

    def test_cancel_after_fire_is_noop(self, scheduler):
        fired = []
        timer = DebounceTimer(scheduler)

        timer.arm(100, lambda: fired.append(True))
        scheduler.advance(100)

        assert timer.cancel() is False
        assert timer.cancel() is False
        assert fired == [True]

    def test_cancel_when_never_armed(self, scheduler):
        assert DebounceTimer(scheduler).cancel() is False

    def test_rearm_after_cancel_starts_new_window(self, scheduler):
        fired = []
        timer = DebounceTimer(scheduler)

        timer.arm(100, lambda: fired.append(scheduler.now_ms))
        scheduler.advance(50)
        timer.cancel()
        timer.arm(100, lambda: fired.append(scheduler.now_ms))

        scheduler.advance(99)
        assert fired == []
        scheduler.advance(1)
        assert fired == [150]

    def test_fire_callback_may_rearm(self, scheduler):
        """The armed flag is cleared before the callback runs"""
        fired = []
        timer = DebounceTimer(scheduler)

        def on_fire():
            fired.append(scheduler.now_ms)
            if len(fired) < 3:
                timer.arm(100, on_fire)

        timer.arm(100, on_fire)
        scheduler.advance(1000)

        assert fired == [100, 200, 300]


class TestManualScheduler:
    """Tests for the virtual clock"""

    def test_calls_fire_in_due_order(self):
        scheduler = ManualScheduler()
        order = []

        scheduler.call_later(30, lambda: order.append("c"))
        scheduler.call_later(10, lambda: order.append("a"))
        scheduler.call_later(20, lambda: order.append("b"))

        assert scheduler.advance(25) == 2
        assert order == ["a", "b"]
        assert scheduler.pending == 1

    def test_cancelled_call_does_not_fire(self):
        scheduler = ManualScheduler()
        order = []

        call = scheduler.call_later(10, lambda: order.append("x"))
        call.cancel()

        assert scheduler.advance(100) == 0
        assert order == []
        assert scheduler.now_ms == 100


class TestRealSchedulers:
    """Timers on an event loop and on threads"""

    def test_asyncio_scheduler(self):
        async def run():
            fired = []
            timer = DebounceTimer(AsyncioScheduler())
            timer.arm(10, lambda: fired.append(True))
            await asyncio.sleep(0.1)
            return fired, timer.is_armed

        fired, armed = asyncio.run(run())

        assert fired == [True]
        assert armed is False

    def test_asyncio_cancel(self):
        async def run():
            fired = []
            timer = DebounceTimer(AsyncioScheduler())
            timer.arm(10, lambda: fired.append(True))
            timer.cancel()
            await asyncio.sleep(0.05)
            return fired

        assert asyncio.run(run()) == []

    def test_threading_scheduler(self):
        done = threading.Event()
        timer = DebounceTimer(ThreadingScheduler(), lock=threading.RLock())

        timer.arm(10, done.set)

        assert done.wait(2.0)
        assert not timer.is_armed
