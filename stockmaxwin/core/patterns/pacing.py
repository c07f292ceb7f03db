"""请求节流：最小间隔 + 随机抖动，以及在途请求并发上限."""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Awaitable, Callable
from types import TracebackType

from stockmaxwin.core.exceptions import ConfigurationError

DEFAULT_REQUEST_GAP = 0.2
DEFAULT_JITTER_MAX = 0.15
DEFAULT_MAX_CONCURRENT = 4
MAX_CONCURRENT_CAP = 20


def resolve_concurrency_limit(value: int | None, default: int = DEFAULT_MAX_CONCURRENT) -> int:
    """Default non-positive limits and clamp large ones to the hard cap."""

    if value is None or value < 1:
        return default
    return min(value, MAX_CONCURRENT_CAP)


class Pacer:
    """Enforce a minimum spacing plus random jitter between request starts.

    One instance is shared by every caller of a transport, so the spacing is
    process-wide. The wait, the jitter draw and the timestamp update happen
    under a single lock: two callers can never observe the same previous
    start, and the interval between consecutive released requests is always
    at least ``gap``.
    """

    def __init__(
        self,
        gap: float = DEFAULT_REQUEST_GAP,
        jitter_max: float = DEFAULT_JITTER_MAX,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._validate(gap, jitter_max)
        self._gap = gap
        self._jitter_max = jitter_max
        self._rng = rng or random.Random()
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_start: float | None = None

    @staticmethod
    def _validate(gap: float, jitter_max: float) -> None:
        if gap < 0:
            raise ConfigurationError("request gap must be non-negative", details={"gap": gap})
        if jitter_max < 0:
            raise ConfigurationError("jitter must be non-negative", details={"jitter_max": jitter_max})

    @property
    def gap(self) -> float:
        return self._gap

    @property
    def jitter_max(self) -> float:
        return self._jitter_max

    @property
    def last_start(self) -> float | None:
        """Clock reading of the most recent released request, if any."""
        return self._last_start

    async def configure(self, gap: float | None = None, jitter_max: float | None = None) -> None:
        """Change spacing at runtime; applies from the next ``pace()`` call."""

        new_gap = self._gap if gap is None else gap
        new_jitter = self._jitter_max if jitter_max is None else jitter_max
        self._validate(new_gap, new_jitter)
        async with self._lock:
            self._gap = new_gap
            self._jitter_max = new_jitter

    async def pace(self) -> float:
        """Wait for this caller's turn and return the seconds slept.

        Cancellation while waiting propagates immediately and leaves the
        previous start time untouched, so no pacing slot is consumed.
        """

        async with self._lock:
            if self._gap <= 0 and self._jitter_max <= 0:
                return 0.0
            jitter = self._rng.uniform(0.0, self._jitter_max) if self._jitter_max > 0 else 0.0
            delay = 0.0
            if self._last_start is not None:
                elapsed = self._clock() - self._last_start
                delay = max(0.0, self._gap + jitter - elapsed)
            if delay > 0:
                await self._sleep(delay)
            self._last_start = self._clock()
            return delay


class ConcurrencyGate:
    """Counting semaphore bounding simultaneously in-flight requests.

    A waiter cancelled inside :meth:`acquire` never ends up holding a slot.
    """

    def __init__(self, limit: int | None = DEFAULT_MAX_CONCURRENT) -> None:
        self._limit = resolve_concurrency_limit(limit)
        self._semaphore = asyncio.Semaphore(self._limit)
        self._in_flight = 0
        self._peak = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def peak(self) -> int:
        """Highest number of simultaneously held slots observed so far."""
        return self._peak

    async def acquire(self) -> None:
        await self._semaphore.acquire()
        self._in_flight += 1
        self._peak = max(self._peak, self._in_flight)

    def release(self) -> None:
        if self._in_flight <= 0:
            raise RuntimeError("ConcurrencyGate released more times than acquired")
        self._in_flight -= 1
        self._semaphore.release()

    async def __aenter__(self) -> ConcurrencyGate:
        await self.acquire()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.release()
