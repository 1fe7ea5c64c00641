"""One-shot timers for entry expiration."""

import logging
import math
import threading
from typing import Callable, Set

logger = logging.getLogger(__name__)


class TimerScheduler:
    """Runs callbacks once after a delay on daemon timer threads.

    Timers are never cancelled individually; a callback is expected to check
    whether it is still relevant when it fires. cancel_all() stops every
    pending timer when the owning store is closed.
    """

    def __init__(self):
        self._timers: Set[threading.Timer] = set()
        self._lock = threading.Lock()

    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        """Run callback once after delay seconds.

        Args:
            delay: Seconds to wait; infinite delays are ignored
            callback: Function called with no arguments
        """
        if not math.isfinite(delay):
            return

        timer = None

        def run():
            with self._lock:
                self._timers.discard(timer)
            try:
                callback()
            except Exception:
                logger.exception("Expiration callback failed")

        timer = threading.Timer(max(0.0, delay), run)
        timer.daemon = True
        with self._lock:
            self._timers.add(timer)
        timer.start()

    def pending(self) -> int:
        """Number of timers that have not fired yet."""
        with self._lock:
            return len(self._timers)

    def cancel_all(self) -> None:
        """Cancel every pending timer."""
        with self._lock:
            timers = list(self._timers)
            self._timers.clear()
        for timer in timers:
            timer.cancel()
