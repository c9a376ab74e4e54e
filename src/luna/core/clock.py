"""
Clock and timer abstraction.

Memory expiry is driven by per-entry deferred callbacks. Both clocks hand out
cancellable handles so an overwrite or delete can cancel the pending expiry of
the entry it replaces.

- SystemClock: wall time, timers on the running asyncio loop
- ManualClock: virtual time for tests, timers fire on advance()
"""

import asyncio
import heapq
import itertools
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Protocol

from luna.core.logging import get_logger

logger = get_logger("core.clock")


class TimerHandle(Protocol):
    """Handle of a scheduled callback."""

    def cancel(self) -> None: ...


class Clock(ABC):
    """Time source plus deferred callback scheduling."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time."""
        ...

    @abstractmethod
    def call_later(self, delay: timedelta, callback: Callable[[], None]) -> TimerHandle:
        """Run callback once after delay."""
        ...


class _NoopHandle:
    def cancel(self) -> None:
        return None


class SystemClock(Clock):
    """Wall clock. Timers need a running event loop.

    Without one (plain synchronous use) no timer is armed and expired entries
    are only dropped by query-time filtering and the cleanup sweep.
    """

    def now(self) -> datetime:
        return datetime.now()

    def call_later(self, delay: timedelta, callback: Callable[[], None]) -> TimerHandle:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, timer not armed")
            return _NoopHandle()
        return loop.call_later(max(0.0, delay.total_seconds()), callback)


class _ManualTimer:
    __slots__ = ("due", "callback", "cancelled")

    def __init__(self, due: datetime, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock(Clock):
    """Virtual clock for deterministic tests."""

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2024, 1, 1, 12, 0, 0)
        self._timers: list[tuple[datetime, int, _ManualTimer]] = []
        self._seq = itertools.count()

    def now(self) -> datetime:
        return self._now

    def call_later(self, delay: timedelta, callback: Callable[[], None]) -> TimerHandle:
        timer = _ManualTimer(self._now + max(delay, timedelta(0)), callback)
        heapq.heappush(self._timers, (timer.due, next(self._seq), timer))
        return timer

    def advance(self, delta: timedelta | float) -> None:
        """Move time forward, firing due timers in order.

        A float is taken as seconds.
        """
        if not isinstance(delta, timedelta):
            delta = timedelta(seconds=delta)
        target = self._now + delta

        while self._timers and self._timers[0][0] <= target:
            due, _, timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            self._now = max(self._now, due)
            try:
                timer.callback()
            except Exception:
                logger.exception("Timer callback failed")

        self._now = target

    @property
    def pending_timers(self) -> int:
        return sum(1 for _, _, t in self._timers if not t.cancelled)
