"""请求节流与并发闸门测试."""

import asyncio
import random

import pytest

from stockmaxwin.core.exceptions import ConfigurationError
from stockmaxwin.core.patterns import (
    DEFAULT_MAX_CONCURRENT,
    MAX_CONCURRENT_CAP,
    ConcurrencyGate,
    Pacer,
    resolve_concurrency_limit,
)


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


class TestPacer:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(("gap", "jitter"), [(0.2, 0.15), (0.05, 0.0), (1.0, 0.5)])
    async def test_interval_never_below_gap(self, gap, jitter):
        clock = FakeClock()
        pacer = Pacer(gap, jitter, rng=random.Random(7), clock=clock, sleep=clock.sleep)

        starts = []
        for _ in range(6):
            await pacer.pace()
            starts.append(pacer.last_start)
            clock.now += 0.01  # caller work between requests

        intervals = [b - a for a, b in zip(starts, starts[1:])]
        assert all(interval >= gap - 1e-9 for interval in intervals)

    @pytest.mark.asyncio
    async def test_first_call_does_not_wait(self):
        clock = FakeClock()
        pacer = Pacer(0.2, 0.15, clock=clock, sleep=clock.sleep)

        assert await pacer.pace() == 0.0
        assert clock.sleeps == []
        assert pacer.last_start == 100.0

    @pytest.mark.asyncio
    async def test_elapsed_time_is_credited(self):
        clock = FakeClock()
        pacer = Pacer(0.2, 0.0, clock=clock, sleep=clock.sleep)

        await pacer.pace()
        clock.now += 0.15
        waited = await pacer.pace()

        assert waited == pytest.approx(0.05)

    @pytest.mark.asyncio
    async def test_zero_gap_and_jitter_never_sleep(self):
        clock = FakeClock()
        pacer = Pacer(0.0, 0.0, clock=clock, sleep=clock.sleep)

        for _ in range(3):
            assert await pacer.pace() == 0.0
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_concurrent_callers_are_serialized(self):
        clock = FakeClock()
        pacer = Pacer(0.2, 0.0, clock=clock, sleep=clock.sleep)
        starts: list[float] = []

        async def call() -> None:
            await pacer.pace()
            starts.append(pacer.last_start)

        await asyncio.gather(*(call() for _ in range(4)))

        starts.sort()
        assert [round(b - a, 6) for a, b in zip(starts, starts[1:])] == [0.2, 0.2, 0.2]

    @pytest.mark.asyncio
    async def test_cancellation_keeps_previous_start(self):
        pacer = Pacer(10.0, 0.0)
        await pacer.pace()
        first = pacer.last_start

        waiter = asyncio.create_task(pacer.pace())
        await asyncio.sleep(0.01)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        assert pacer.last_start == first

    @pytest.mark.asyncio
    async def test_configure_changes_gap(self):
        pacer = Pacer(0.2, 0.15)
        await pacer.configure(gap=0.5)
        assert pacer.gap == 0.5
        assert pacer.jitter_max == 0.15

    def test_negative_values_rejected(self):
        with pytest.raises(ConfigurationError):
            Pacer(-1.0, 0.0)
        with pytest.raises(ConfigurationError):
            Pacer(0.2, -0.1)


class TestConcurrencyGate:
    def test_limit_resolution(self):
        assert resolve_concurrency_limit(None) == DEFAULT_MAX_CONCURRENT
        assert resolve_concurrency_limit(0) == DEFAULT_MAX_CONCURRENT
        assert resolve_concurrency_limit(7) == 7
        assert resolve_concurrency_limit(500) == MAX_CONCURRENT_CAP
        assert ConcurrencyGate(100).limit == MAX_CONCURRENT_CAP

    @pytest.mark.asyncio
    async def test_never_exceeds_limit(self):
        gate = ConcurrencyGate(3)

        async def hold() -> None:
            async with gate:
                assert gate.in_flight <= 3
                await asyncio.sleep(0.001)

        await asyncio.gather(*(hold() for _ in range(20)))

        assert gate.peak == 3
        assert gate.in_flight == 0

    @pytest.mark.asyncio
    async def test_cancelled_waiter_holds_no_slot(self):
        gate = ConcurrencyGate(1)
        await gate.acquire()

        waiter = asyncio.create_task(gate.acquire())
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        assert gate.in_flight == 1
        gate.release()
        assert gate.in_flight == 0

        await asyncio.wait_for(gate.acquire(), timeout=1)
        assert gate.in_flight == 1
        gate.release()

    def test_release_without_acquire_fails(self):
        gate = ConcurrencyGate(2)
        with pytest.raises(RuntimeError):
            gate.release()
