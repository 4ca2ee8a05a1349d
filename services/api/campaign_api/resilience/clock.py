"""Clock capability shared by the cache and the circuit breaker.

Production code runs on ``SystemClock``. Tests drive ``ManualClock`` so
expiry, cooldowns and call timeouts can be exercised without real delays.

Example:
    >>> clock = ManualClock(start=1_700_000_000.0)
    >>> clock.time()
    1700000000.0
    >>> clock.advance(5)
    >>> clock.time()
    1700000005.0
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from typing import Protocol


class Clock(Protocol):
    """Source of "now" and of timer suspension."""

    def time(self) -> float:
        """Return the current instant in epoch seconds."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend the caller for the given number of seconds."""
        ...


class SystemClock:
    """Wall clock backed by ``time.time`` and ``asyncio.sleep``."""

    def time(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class ManualClock:
    """Deterministic virtual clock.

    Time only moves when ``advance`` or ``set_time`` is called. Pending
    ``sleep`` calls are woken in deadline order once the simulated time
    reaches their deadline.
    """

    def __init__(self, start: float = 0.0) -> None:
        """Create a clock positioned at ``start`` epoch seconds."""
        self._now = float(start)
        self._sleepers: list[tuple[float, int, asyncio.Future[None]]] = []
        self._seq = itertools.count()

    def time(self) -> float:
        return self._now

    async def sleep(self, seconds: float) -> None:
        """Wait until the clock has been advanced by ``seconds``."""
        if seconds <= 0:
            await asyncio.sleep(0)
            return

        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        heapq.heappush(self._sleepers, (self._now + seconds, next(self._seq), future))
        await future

    def advance(self, seconds: float) -> None:
        """Move time forward and wake every sleeper that is now due.

        Raises:
            ValueError: If ``seconds`` is negative
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance backwards: {seconds}")
        self._now += seconds
        self._wake_due()

    def set_time(self, timestamp: float) -> None:
        """Position the clock at an absolute instant (must not go backwards)."""
        if timestamp < self._now:
            raise ValueError(f"Cannot move backwards: {timestamp} < {self._now}")
        self._now = float(timestamp)
        self._wake_due()

    @property
    def pending_sleepers(self) -> int:
        """Number of sleeps that have not completed or been cancelled yet."""
        return sum(1 for _, _, future in self._sleepers if not future.done())

    def _wake_due(self) -> None:
        while self._sleepers and self._sleepers[0][0] <= self._now:
            _, _, future = heapq.heappop(self._sleepers)
            if not future.done():
                future.set_result(None)
