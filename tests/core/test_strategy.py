"""选股条件与组合策略测试."""

import pytest

from stockmaxwin.core.models import EnrichedRecord, QuoteRecord
from stockmaxwin.core.services import (
    all_of,
    any_of,
    default_strategy,
    get_strategy,
    quote_pre_filter,
    trend_momentum_strategy,
)
from stockmaxwin.core.services import strategy


def trend_candidate(**overrides) -> EnrichedRecord:
    values = dict(
        code="600001",
        name="甲股份",
        price=12.0,
        change_pct=4.0,
        amount=2e9,
        volume=100000,
        volume_ratio=1.5,
        turnover_rate=5.0,
        market_cap=8e9,
        pe=25.0,
        ma5=11.5,
        ma10=11.0,
        ma20=10.5,
        ma60=10.0,
        ma60_up=True,
        macd_histogram=0.3,
        macd_histogram_prev=0.2,
    )
    values.update(overrides)
    return EnrichedRecord(**values)


class TestComposition:
    def test_all_of_ignores_none(self):
        criterion = all_of(None, strategy.price_above_ma20, None)

        assert criterion(trend_candidate()) is True
        assert criterion(trend_candidate(price=10.0)) is False

    def test_any_of(self):
        criterion = any_of(strategy.macd_golden_cross, None, strategy.ma60_up)

        assert criterion(trend_candidate(ma60_up=False, macd_golden_cross=True)) is True
        assert criterion(trend_candidate(ma60_up=False)) is False

    def test_none_record_rejected(self):
        assert all_of()(None) is False
        assert any_of(strategy.ma60_up)(None) is False

    def test_empty_all_of_accepts(self):
        assert all_of()(trend_candidate()) is True


class TestCriteria:
    @pytest.mark.parametrize(
        ("code", "expected"),
        [("600001", True), ("500001", True), ("000001", True), ("300750", False), ("688001", True), ("0", False)],
    )
    def test_main_board(self, code, expected):
        assert strategy.main_board(trend_candidate(code=code)) is expected

    @pytest.mark.parametrize("name", ["ST甲", "*st乙", "退市丙"])
    def test_name_exclusions(self, name):
        record = trend_candidate(name=name)
        assert not (strategy.exclude_st(record) and strategy.exclude_delisted(record))

    def test_ranges_are_inclusive(self):
        in_range = strategy.turnover_rate_range(3.0, 10.0)
        assert in_range(trend_candidate(turnover_rate=3.0))
        assert in_range(trend_candidate(turnover_rate=10.0))
        assert not in_range(trend_candidate(turnover_rate=10.01))

    def test_zero_pe_never_passes(self):
        assert strategy.pe_range(0.0, 60.0)(trend_candidate(pe=0.0)) is False
        assert strategy.pe_range(0.0, 60.0)(trend_candidate(pe=60.0)) is True

    def test_fund_flow_missing_passes(self):
        record = trend_candidate()
        assert strategy.net_inflow_min(1e8)(record)
        assert strategy.main_force_inflow_above_outflow(record)

    def test_fund_flow_checked_when_present(self):
        record = trend_candidate(net_inflow=5e7, main_force_inflow=1e7, main_force_outflow=2e7)
        assert not strategy.net_inflow_min(1e8)(record)
        assert not strategy.main_force_inflow_above_outflow(record)

    def test_macd_momentum(self):
        assert strategy.macd_momentum(trend_candidate())
        shrinking = trend_candidate(macd_histogram=0.1, macd_histogram_prev=0.2)
        assert not strategy.macd_momentum(shrinking)
        assert strategy.macd_momentum(shrinking.model_copy(update={"macd_golden_cross": True}))
        assert not strategy.macd_histogram_grow(trend_candidate(macd_histogram=-0.1, macd_histogram_prev=-0.3))


class TestTrendMomentumStrategy:
    def test_accepts_candidate(self):
        assert trend_momentum_strategy()(trend_candidate()) is True

    @pytest.mark.parametrize(
        "overrides",
        [
            {"name": "ST甲"},
            {"market_cap": 4e9},
            {"pe": 0.0},
            {"pe": 61.0},
            {"price": 10.4},
            {"ma60_up": False},
            {"macd_histogram": 0.1, "macd_histogram_prev": 0.2},
            {"turnover_rate": 11.0},
            {"volume_ratio": 1.1},
        ],
    )
    def test_rejects_on_single_failure(self, overrides):
        assert trend_momentum_strategy()(trend_candidate(**overrides)) is False


class TestDefaultStrategy:
    def test_accepts_candidate(self):
        assert default_strategy()(trend_candidate(volume_ratio=1.6)) is True

    @pytest.mark.parametrize(
        "overrides",
        [
            {"code": "300750"},
            {"amount": 9e8},
            {"change_pct": 7.5},
            {"ma5": 10.9},
            {"net_inflow": 1e7, "main_force_inflow": 1.0},
        ],
    )
    def test_rejects(self, overrides):
        assert default_strategy()(trend_candidate(volume_ratio=1.6, **overrides)) is False


class TestPreFilter:
    def test_quote_pre_filter(self):
        quote = QuoteRecord(code="600001", name="甲", market_cap=6e9, pe=30.0, turnover_rate=4.0, volume_ratio=1.3)

        assert quote_pre_filter(quote) is True
        assert quote_pre_filter(quote.model_copy(update={"pe": 0.0})) is False
        assert quote_pre_filter(quote.model_copy(update={"name": "ST甲"})) is False
        assert quote_pre_filter(None) is False


class TestRegistry:
    def test_known_names(self):
        assert get_strategy("trend")(trend_candidate()) is True
        assert callable(get_strategy("default"))

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="unknown strategy"):
            get_strategy("moonshot")
