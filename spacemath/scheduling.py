"""Clocks and delayed tasks.

Nothing here uses threads. A ``Scheduler`` only remembers when each task is
due; the host calls ``run_due`` (through ``GameSession.tick``) whenever it gets
control, and tests advance a ``FakeClock`` instead of sleeping.
"""

from __future__ import annotations

import heapq
import itertools
import time
from typing import Callable, List, Protocol, Tuple


class Clock(Protocol):
    def now(self) -> float:
        """Return monotonic seconds."""
        ...


class RealClock:
    def now(self) -> float:
        return time.monotonic()


class FakeClock:
    """Deterministic test clock."""

    def __init__(self, *, start: float = 0.0) -> None:
        self._t = float(start)

    def now(self) -> float:
        return self._t

    def advance(self, dt: float) -> None:
        if dt < 0:
            raise ValueError("dt must be non-negative")
        self._t += float(dt)

    def advance_ms(self, ms: float) -> None:
        self.advance(ms / 1000.0)


class Scheduler:
    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._queue: List[Tuple[float, int, Callable[[], None]]] = []
        self._seq = itertools.count()

    @property
    def clock(self) -> Clock:
        return self._clock

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> None:
        due = self._clock.now() + max(0.0, delay_ms) / 1000.0
        heapq.heappush(self._queue, (due, next(self._seq), callback))

    def pending(self) -> int:
        return len(self._queue)

    def run_due(self) -> int:
        """Run every task due by now, earliest first. Returns how many ran."""
        ran = 0
        now = self._clock.now()
        while self._queue and self._queue[0][0] <= now:
            _, _, callback = heapq.heappop(self._queue)
            callback()
            ran += 1
        return ran

    def clear(self) -> None:
        self._queue.clear()
