"""Shared fixtures: temporary storage, a fake clock and a manual timer scheduler."""

import math
import tempfile
from pathlib import Path

import pytest

from nestcache.config import StoreConfig
from nestcache.store import Store


class FakeClock:
    """Clock returning a settable time."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


class ManualScheduler:
    """Scheduler whose timers fire only when advance() moves the clock past them."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self._timers = []
        self._counter = 0

    def schedule(self, delay, callback):
        if not math.isfinite(delay):
            return
        self._counter += 1
        self._timers.append((self.clock.now + delay, self._counter, callback))

    def pending(self) -> int:
        return len(self._timers)

    def cancel_all(self) -> None:
        self._timers.clear()

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in order."""
        target = self.clock.now + seconds
        while True:
            due = [t for t in self._timers if t[0] <= target]
            if not due:
                break
            timer = min(due)
            self._timers.remove(timer)
            self.clock.now = max(self.clock.now, timer[0])
            timer[2]()
        self.clock.now = target


@pytest.fixture
def temp_cache_dir():
    """Create temporary cache directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store_config(temp_cache_dir):
    """Create test store configuration."""
    return StoreConfig(cache_dir=temp_cache_dir, fallback_dir=None)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return ManualScheduler(clock)


@pytest.fixture
def store(store_config, clock, scheduler):
    """Create test store driven by the fake clock."""
    store = Store(config=store_config, clock=clock, scheduler=scheduler)
    yield store
    store.close()
