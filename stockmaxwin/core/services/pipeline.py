"""
选股任务池.

Quotes flow in through a bounded job :class:`Channel`, a fixed number of
workers fetch 80 daily bars per security, derive indicators once, apply the
predicate and push accepted records to a bounded result channel. When the
job channel is exhausted and every worker has exited, the result channel is
closed exactly once.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

from stockmaxwin.core.exceptions import ConfigurationError, StockMaxWinError
from stockmaxwin.core.logging import get_logger
from stockmaxwin.core.models import Bar, EnrichedRecord, QuoteRecord
from stockmaxwin.core.services.indicators import derive_indicators

logger = get_logger(__name__)

DEFAULT_CONCURRENCY = 10
MIN_BARS_FOR_STRATEGY = 20
BAR_COUNT_FOR_STRATEGY = 80  # 一次请求 80 天，MA/MA60 趋势/MACD 都从同一序列推导

T = TypeVar("T")

Predicate = Callable[[EnrichedRecord], bool]


def default_predicate(record: EnrichedRecord) -> bool:
    """现价站上 MA20."""
    return record.price > record.ma20


class BarSource(Protocol):
    async def get_history_bars(self, code: str, count: int) -> list[Bar]: ...


class ChannelClosed(Exception):
    """Raised by :class:`Channel` operations once the channel is closed and drained."""


_END = object()


class Channel(Generic[T]):
    """Bounded FIFO with an idempotent, non-blocking close.

    Items put before :meth:`close` are still delivered; afterwards ``get``
    raises :class:`ChannelClosed` for every consumer and ``put`` refuses new
    items.
    """

    def __init__(self, maxsize: int) -> None:
        if maxsize < 1:
            raise ConfigurationError("channel size must be at least 1", details={"maxsize": maxsize})
        self._maxsize = maxsize
        self._slots = asyncio.Semaphore(maxsize)
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False

    @property
    def maxsize(self) -> int:
        return self._maxsize

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize() - (1 if self._closed else 0)

    async def put(self, item: T) -> None:
        """Wait for free capacity, then enqueue; cancellable while waiting."""

        if self._closed:
            raise ChannelClosed
        await self._slots.acquire()
        if self._closed:
            self._slots.release()
            raise ChannelClosed
        self._queue.put_nowait(item)

    async def get(self) -> T:
        item = await self._queue.get()
        if item is _END:
            # 结束标记放回，其余消费者同样能看到
            self._queue.put_nowait(_END)
            raise ChannelClosed
        self._slots.release()
        return item  # type: ignore[return-value]

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_END)

    async def __aiter__(self) -> AsyncIterator[T]:
        while True:
            try:
                yield await self.get()
            except ChannelClosed:
                return


@dataclass
class PipelineConfig:
    """Worker count and acceptance predicate."""

    concurrency: int = DEFAULT_CONCURRENCY
    predicate: Predicate | None = default_predicate

    def __post_init__(self) -> None:
        if self.concurrency is None or self.concurrency < 1:
            self.concurrency = DEFAULT_CONCURRENCY
        if self.predicate is None:
            self.predicate = default_predicate


class WorkerPool:
    """Fixed pool of workers between a job channel and a result channel."""

    def __init__(
        self,
        config: PipelineConfig | None,
        provider: BarSource | None,
        jobs: Channel[QuoteRecord] | None,
        results: Channel[EnrichedRecord] | None,
    ) -> None:
        if provider is None:
            raise ConfigurationError("worker pool requires a bar provider")
        if jobs is None or results is None:
            raise ConfigurationError("worker pool requires both job and result channels")
        self.config = config or PipelineConfig()
        self.provider = provider
        self.jobs = jobs
        self.results = results

    async def run(self) -> None:
        """Run until the job channel is exhausted, then close the results."""

        logger.info("worker: pool start concurrency={}", self.config.concurrency)
        try:
            async with asyncio.TaskGroup() as group:
                for worker_id in range(self.config.concurrency):
                    group.create_task(self._worker(worker_id), name=f"screen-worker-{worker_id}")
        finally:
            self.results.close()
        logger.info("worker: pool done")

    async def _worker(self, worker_id: int) -> None:
        predicate = self.config.predicate or default_predicate
        async for quote in self.jobs:
            record = await self.enrich(quote)
            if record is None or not predicate(record):
                continue
            try:
                await self.results.put(record)
            except ChannelClosed:
                logger.warning("worker: {} result channel closed, stopping", worker_id)
                return

    async def enrich(self, quote: QuoteRecord) -> EnrichedRecord | None:
        """Fetch bars for one quote and merge indicators; ``None`` when dropped."""

        try:
            bars = await self.provider.get_history_bars(quote.code, BAR_COUNT_FOR_STRATEGY)
        except (StockMaxWinError, ValueError) as exc:
            logger.warning("worker: get_history_bars code={} err={}", quote.code, exc)
            return None
        if len(bars) < MIN_BARS_FOR_STRATEGY:
            logger.info("worker: bars<{} code={}", MIN_BARS_FOR_STRATEGY, quote.code)
            return None

        snapshot = derive_indicators(bars)
        return EnrichedRecord(
            **quote.model_dump(),
            ma5=snapshot.ma5,
            ma10=snapshot.ma10,
            ma20=snapshot.ma20,
            ma60=snapshot.ma60,
            ma60_up=snapshot.ma60_up,
            macd_histogram=snapshot.macd.histogram,
            macd_histogram_prev=snapshot.macd.histogram_prev,
            macd_golden_cross=snapshot.macd.golden_cross,
        )
