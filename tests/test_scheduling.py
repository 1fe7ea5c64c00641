"""Tests for the timer scheduler."""

import math
import threading

from nestcache.scheduling import TimerScheduler


class TestTimerScheduler:
    """Test one-shot timers on real threads."""

    def test_callback_fires(self):
        """Test a scheduled callback runs after its delay."""
        scheduler = TimerScheduler()
        fired = threading.Event()

        scheduler.schedule(0.01, fired.set)

        assert fired.wait(timeout=5)

    def test_infinite_delay_ignored(self):
        """Test infinite delays never start a timer."""
        scheduler = TimerScheduler()

        scheduler.schedule(math.inf, lambda: None)

        assert scheduler.pending() == 0

    def test_cancel_all(self):
        """Test cancelled timers never fire."""
        scheduler = TimerScheduler()
        fired = threading.Event()

        scheduler.schedule(60, fired.set)
        assert scheduler.pending() == 1
        scheduler.cancel_all()

        assert scheduler.pending() == 0
        assert not fired.wait(timeout=0.05)

    def test_failing_callback_does_not_break_scheduler(self):
        """Test an exception in one callback leaves later timers working."""
        scheduler = TimerScheduler()
        fired = threading.Event()

        def boom():
            raise RuntimeError("boom")

        scheduler.schedule(0.0, boom)
        scheduler.schedule(0.01, fired.set)

        assert fired.wait(timeout=5)
