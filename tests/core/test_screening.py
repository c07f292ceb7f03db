"""单次选股流程测试."""

from __future__ import annotations

import asyncio

import pytest

from stockmaxwin.core.exceptions import NetworkError
from stockmaxwin.core.models import Bar, EnrichedRecord, QuoteRecord
from stockmaxwin.core.services import ScreeningService
from stockmaxwin.core.services.screening import rank_by_change_pct


def rising_bars(count: int = 80) -> list[Bar]:
    return [Bar(date=f"d{i:03d}", open=10.0 + 0.1 * i, close=10.0 + 0.1 * i, volume=100) for i in range(count)]


class FakeProvider:
    def __init__(self, quotes: list[QuoteRecord], bars: dict[str, list[Bar]] | None = None, delay: float = 0.0):
        self.quotes = quotes
        self.bars = bars or {}
        self.delay = delay
        self.bar_requests: list[str] = []

    async def get_main_board_quotes(self) -> list[QuoteRecord]:
        return list(self.quotes)

    async def get_history_bars(self, code: str, count: int) -> list[Bar]:
        self.bar_requests.append(code)
        await asyncio.sleep(self.delay)
        return self.bars.get(code, rising_bars())


def quotes(*pcts: float) -> list[QuoteRecord]:
    return [QuoteRecord(code=f"60000{i}", name=f"S{i}", price=100.0, change_pct=pct) for i, pct in enumerate(pcts)]


def accept_all(record: EnrichedRecord) -> bool:
    return True


class TestRanking:
    def test_descending_and_truncated(self):
        records = [EnrichedRecord(code=str(i), change_pct=pct) for i, pct in enumerate([1.0, 5.0, -2.0, 3.0])]

        assert [r.change_pct for r in rank_by_change_pct(records, 2)] == [5.0, 3.0]
        assert [r.change_pct for r in rank_by_change_pct(records, 0)] == [5.0, 3.0, 1.0, -2.0]
        assert rank_by_change_pct([], 10) == []


class TestScreeningService:
    @pytest.mark.asyncio
    async def test_run_selects_and_ranks(self):
        provider = FakeProvider(quotes(1.0, 6.0, 3.0, 4.5))
        service = ScreeningService(provider, concurrency=2, predicate=accept_all, pre_filter=None)

        result = await service.run_once(top_n=3)

        assert [r.change_pct for r in result.selected] == [6.0, 4.5, 3.0]
        assert result.quotes_total == 4
        assert result.candidates == 4
        assert len(result.trace_id) == 8
        assert sorted(provider.bar_requests) == [f"60000{i}" for i in range(4)]

    @pytest.mark.asyncio
    async def test_pre_filter_limits_bar_requests(self):
        provider = FakeProvider(quotes(1.0, 2.0, 3.0))
        service = ScreeningService(
            provider,
            predicate=accept_all,
            pre_filter=lambda quote: quote.change_pct >= 2.0,
        )

        result = await service.run_once()

        assert result.candidates == 2
        assert "600000" not in provider.bar_requests

    @pytest.mark.asyncio
    async def test_short_history_and_predicate_excluded(self):
        provider = FakeProvider(quotes(1.0, 2.0, 3.0), bars={"600000": rising_bars(10)})
        service = ScreeningService(
            provider,
            predicate=lambda record: record.code != "600002",
            pre_filter=None,
        )

        result = await service.run_once(top_n=0)

        assert [r.code for r in result.selected] == ["600001"]
        assert result.selected[0].ma20 > 0

    @pytest.mark.asyncio
    async def test_more_candidates_than_queue_size(self):
        provider = FakeProvider(quotes(*[float(i) for i in range(9)]))
        service = ScreeningService(provider, concurrency=2, predicate=accept_all, pre_filter=None, queue_size=2)

        result = await service.run_once(top_n=0)

        assert len(result.selected) == 9

    @pytest.mark.asyncio
    async def test_empty_board(self):
        result = await ScreeningService(FakeProvider([])).run_once()

        assert result.selected == []
        assert result.quotes_total == 0

    @pytest.mark.asyncio
    async def test_list_failure_propagates(self):
        class Broken(FakeProvider):
            async def get_main_board_quotes(self) -> list[QuoteRecord]:
                raise NetworkError("HTTP 503", "eastmoney", status_code=503)

        with pytest.raises(NetworkError):
            await ScreeningService(Broken([])).run_once()

    @pytest.mark.asyncio
    async def test_run_timeout(self):
        provider = FakeProvider(quotes(1.0, 2.0), delay=5.0)
        service = ScreeningService(provider, concurrency=1, predicate=accept_all, pre_filter=None)

        with pytest.raises(TimeoutError):
            await service.run_once(timeout=0.05)

    @pytest.mark.asyncio
    async def test_each_run_gets_its_own_trace_id(self):
        service = ScreeningService(FakeProvider(quotes(1.0)), predicate=accept_all, pre_filter=None)

        first = await service.run_once()
        second = await service.run_once()

        assert first.trace_id != second.trace_id
