"""
单次选股流程.

主板行情 -> 基本面/成交量初选 -> 任务池拉 K 线、算指标、策略过滤 -> 按涨跌幅排序取前 N.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from stockmaxwin.core.logging import get_logger, log_context, new_trace_id
from stockmaxwin.core.models import Bar, EnrichedRecord, QuoteRecord
from stockmaxwin.core.services.pipeline import (
    DEFAULT_CONCURRENCY,
    Channel,
    PipelineConfig,
    Predicate,
    WorkerPool,
)
from stockmaxwin.core.services.strategy import quote_pre_filter, trend_momentum_strategy

logger = get_logger(__name__)

JOB_CHANNEL_BUFFER = 50
DEFAULT_TOP_N = 10
DEFAULT_RUN_TIMEOUT = 600.0


class ScreeningProvider(Protocol):
    async def get_main_board_quotes(self) -> list[QuoteRecord]: ...

    async def get_history_bars(self, code: str, count: int) -> list[Bar]: ...


@dataclass
class ScreeningResult:
    trace_id: str
    quotes_total: int
    candidates: int
    selected: list[EnrichedRecord] = field(default_factory=list)


def rank_by_change_pct(records: list[EnrichedRecord], top_n: int) -> list[EnrichedRecord]:
    """涨跌幅降序，取前 ``top_n``（非正数表示不截断）."""

    ranked = sorted(records, key=lambda record: record.change_pct, reverse=True)
    if top_n > 0:
        return ranked[:top_n]
    return ranked


class ScreeningService:
    """Runs one screening pass over the main board."""

    def __init__(
        self,
        provider: ScreeningProvider,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        predicate: Predicate | None = None,
        pre_filter: Callable[[QuoteRecord], bool] | None = quote_pre_filter,
        queue_size: int = JOB_CHANNEL_BUFFER,
    ) -> None:
        self.provider = provider
        self.config = PipelineConfig(
            concurrency=concurrency,
            predicate=predicate or trend_momentum_strategy(),
        )
        self.pre_filter = pre_filter
        self.queue_size = queue_size

    async def run_once(self, top_n: int = DEFAULT_TOP_N, timeout: float | None = DEFAULT_RUN_TIMEOUT) -> ScreeningResult:
        """Fetch, filter, enrich and rank.

        A pagination failure aborts the run with the underlying
        ``ProviderError``; per-security failures only exclude that security.

        Raises:
            TimeoutError: the run exceeded ``timeout`` seconds.
        """

        trace_id = new_trace_id()
        with log_context(trace_id=trace_id):
            logger.info("main: start")
            async with asyncio.timeout(timeout):
                quotes = await self.provider.get_main_board_quotes()
                if self.pre_filter is not None:
                    candidates = [quote for quote in quotes if self.pre_filter(quote)]
                else:
                    candidates = list(quotes)
                logger.info(
                    "main: pre-filter main board {} -> {} candidates, fetching bars for the latter",
                    len(quotes),
                    len(candidates),
                )
                selected = await self._screen(candidates)

            ranked = rank_by_change_pct(selected, top_n)
            for record in ranked:
                logger.info(
                    "main: selected {} {} price={:.2f} change_pct={:.2f}%",
                    record.code,
                    record.name,
                    record.price,
                    record.change_pct,
                )
            logger.info("main: done selected={} kept={}", len(selected), len(ranked))
            return ScreeningResult(
                trace_id=trace_id,
                quotes_total=len(quotes),
                candidates=len(candidates),
                selected=ranked,
            )

    async def _screen(self, candidates: list[QuoteRecord]) -> list[EnrichedRecord]:
        jobs: Channel[QuoteRecord] = Channel(self.queue_size)
        results: Channel[EnrichedRecord] = Channel(self.queue_size)
        pool = WorkerPool(self.config, self.provider, jobs, results)
        selected: list[EnrichedRecord] = []

        async def produce() -> None:
            try:
                for quote in candidates:
                    await jobs.put(quote)
            finally:
                jobs.close()

        async def consume() -> None:
            async for record in results:
                selected.append(record)

        async with asyncio.TaskGroup() as group:
            group.create_task(pool.run())
            group.create_task(produce())
            group.create_task(consume())
        return selected
