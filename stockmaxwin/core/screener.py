"""
High level entry point wiring settings into transport, provider and services.

Pacing, concurrency and retry values are taken from :class:`Settings` once,
at construction time; nothing below re-reads the environment.
"""

from __future__ import annotations

from typing import Any

import httpx

from stockmaxwin.core.client.transport import RetryingTransport
from stockmaxwin.core.config import Settings, get_settings
from stockmaxwin.core.models import Bar, BriefRecord, IndexQuote, QuoteRecord
from stockmaxwin.core.patterns import ConcurrencyGate, Pacer, RetryPolicy
from stockmaxwin.core.providers import EastMoneyProvider
from stockmaxwin.core.services import PipelineConfig, ScreeningResult, ScreeningService
from stockmaxwin.core.services.pipeline import Predicate


def build_pacer(settings: Settings) -> Pacer:
    return Pacer(settings.request_gap, settings.jitter_max)


def build_gate(settings: Settings) -> ConcurrencyGate:
    return ConcurrencyGate(settings.api_max_concurrent)


def build_retry_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.max_attempts,
        retry_delay=settings.retry_delay,
        rate_limit_delay=settings.rate_limit_delay,
    )


def build_pipeline_config(settings: Settings, predicate: Predicate | None = None) -> PipelineConfig:
    return PipelineConfig(concurrency=settings.concurrency, predicate=predicate)


def build_transport(settings: Settings, client: httpx.AsyncClient | None = None) -> RetryingTransport:
    """Transport with pacing, slot ceiling and retry policy from ``settings``."""

    return RetryingTransport(
        build_pacer(settings),
        build_gate(settings),
        build_retry_policy(settings),
        client=client,
        timeout=settings.http_timeout,
    )


class StockMaxWinClient:
    """Async client for market data and screening runs.

    Use as an async context manager so the underlying HTTP client is closed::

        async with StockMaxWinClient() as client:
            result = await client.screen(top_n=10)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: RetryingTransport | None = None,
        **overrides: Any,
    ) -> None:
        base = settings or get_settings()
        self.settings = base.model_copy(update=overrides) if overrides else base
        self.transport = transport or build_transport(self.settings)
        self.provider = EastMoneyProvider(self.transport)

    async def __aenter__(self) -> StockMaxWinClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self.transport.close()

    async def get_all_stocks(self) -> list[BriefRecord]:
        return await self.provider.get_all_stocks()

    async def get_main_board_quotes(self) -> list[QuoteRecord]:
        return await self.provider.get_main_board_quotes()

    async def get_history_bars(self, code: str, count: int = 80) -> list[Bar]:
        return await self.provider.get_history_bars(code, count)

    async def get_index_quotes(self) -> list[IndexQuote]:
        return await self.provider.get_index_quotes()

    async def screen(
        self,
        *,
        top_n: int | None = None,
        predicate: Predicate | None = None,
        concurrency: int | None = None,
    ) -> ScreeningResult:
        """Run one screening pass with the configured run timeout."""

        config = build_pipeline_config(self.settings, predicate)
        service = ScreeningService(
            self.provider,
            concurrency=concurrency or config.concurrency,
            predicate=predicate,
        )
        return await service.run_once(
            top_n=self.settings.top_n if top_n is None else top_n,
            timeout=self.settings.run_timeout,
        )
