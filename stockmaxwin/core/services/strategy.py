"""
选股条件与组合策略.

A criterion is any callable taking an :class:`EnrichedRecord` and returning
accept/reject. ``all_of`` / ``any_of`` compose them; ``None`` entries are
ignored so optional conditions can be passed through unchanged.
"""

from __future__ import annotations

from collections.abc import Callable

from stockmaxwin.core.models import EnrichedRecord, QuoteRecord

Criterion = Callable[[EnrichedRecord], bool]

# 名称关键词（剔除用）
NAME_KEYWORD_ST = "ST"
NAME_KEYWORD_DELISTED = "退"

# 默认策略阈值
AMOUNT_MIN = 1e9  # 成交额 10 亿
VOLUME_RATIO_MIN = 1.5
TURNOVER_RATE_MIN = 3.0
TURNOVER_RATE_MAX = 12.0
CHANGE_PCT_MIN = 3.5
CHANGE_PCT_MAX = 7.0
NET_INFLOW_MIN = 1e8  # 净流入 1 亿

# 趋势动能策略阈值
MARKET_CAP_MIN = 50 * 1e8  # 总市值 50 亿
PE_MIN = 0.0
PE_MAX = 60.0
TREND_TURNOVER_MIN = 3.0
TREND_TURNOVER_MAX = 10.0
TREND_VOLUME_RATIO_MIN = 1.2


def all_of(*criteria: Criterion | None) -> Criterion:
    active = [c for c in criteria if c is not None]

    def _all(record: EnrichedRecord) -> bool:
        if record is None:
            return False
        return all(criterion(record) for criterion in active)

    return _all


def any_of(*criteria: Criterion | None) -> Criterion:
    active = [c for c in criteria if c is not None]

    def _any(record: EnrichedRecord) -> bool:
        if record is None:
            return False
        return any(criterion(record) for criterion in active)

    return _any


def main_board(record: EnrichedRecord) -> bool:
    """仅主板：上海 6/5 开头，深圳 00 开头."""

    code = record.code.strip()
    if len(code) < 2:
        return False
    if code[0] in "65":
        return True
    return code.startswith("00")


def amount_min(minimum: float) -> Criterion:
    return lambda record: record.amount >= minimum


def volume_ratio_min(minimum: float) -> Criterion:
    return lambda record: record.volume_ratio >= minimum


def turnover_rate_range(minimum: float, maximum: float) -> Criterion:
    return lambda record: minimum <= record.turnover_rate <= maximum


def change_pct_range(minimum: float, maximum: float) -> Criterion:
    return lambda record: minimum <= record.change_pct <= maximum


def price_above_ma5(record: EnrichedRecord) -> bool:
    return record.price > record.ma5


def ma5_above_ma10(record: EnrichedRecord) -> bool:
    return record.ma5 > record.ma10


def price_above_ma20(record: EnrichedRecord) -> bool:
    return record.price > record.ma20


def exclude_st(record: QuoteRecord) -> bool:
    return NAME_KEYWORD_ST not in record.name.upper()


def exclude_delisted(record: QuoteRecord) -> bool:
    return NAME_KEYWORD_DELISTED not in record.name


def net_inflow_min(minimum: float) -> Criterion:
    """Net inflow floor; records without any fund-flow data pass."""

    def _check(record: EnrichedRecord) -> bool:
        if record.net_inflow == 0 and record.main_force_inflow == 0 and record.main_force_outflow == 0:
            return True
        return record.net_inflow >= minimum

    return _check


def main_force_inflow_above_outflow(record: EnrichedRecord) -> bool:
    if record.main_force_inflow == 0 and record.main_force_outflow == 0:
        return True
    return record.main_force_inflow > record.main_force_outflow


def market_cap_min(minimum: float) -> Criterion:
    return lambda record: record.market_cap >= minimum


def pe_range(minimum: float, maximum: float) -> Criterion:
    """P/E window; a zero (invalid) ratio never passes."""

    return lambda record: record.pe > 0 and minimum <= record.pe <= maximum


def ma60_up(record: EnrichedRecord) -> bool:
    return record.ma60_up


def macd_histogram_grow(record: EnrichedRecord) -> bool:
    """红柱且较昨日增长."""
    return record.macd_histogram > 0 and record.macd_histogram > record.macd_histogram_prev


def macd_golden_cross(record: EnrichedRecord) -> bool:
    return record.macd_golden_cross


def macd_momentum(record: EnrichedRecord) -> bool:
    return macd_histogram_grow(record) or macd_golden_cross(record)


def trend_momentum_strategy() -> Criterion:
    """趋势动能：基础过滤 + MA20/MA60 趋势 + MACD 动能 + 成交活跃度."""

    return all_of(
        exclude_st,
        exclude_delisted,
        market_cap_min(MARKET_CAP_MIN),
        pe_range(PE_MIN, PE_MAX),
        price_above_ma20,
        ma60_up,
        macd_momentum,
        turnover_rate_range(TREND_TURNOVER_MIN, TREND_TURNOVER_MAX),
        volume_ratio_min(TREND_VOLUME_RATIO_MIN),
    )


def default_strategy() -> Criterion:
    """主板、成交额≥10亿、量比≥1.5、换手 3%~12%、涨幅 3.5%~7%、均线多头、剔除 ST、资金条件."""

    return all_of(
        main_board,
        amount_min(AMOUNT_MIN),
        volume_ratio_min(VOLUME_RATIO_MIN),
        turnover_rate_range(TURNOVER_RATE_MIN, TURNOVER_RATE_MAX),
        change_pct_range(CHANGE_PCT_MIN, CHANGE_PCT_MAX),
        price_above_ma5,
        ma5_above_ma10,
        price_above_ma20,
        exclude_st,
        net_inflow_min(NET_INFLOW_MIN),
        main_force_inflow_above_outflow,
    )


def quote_pre_filter(quote: QuoteRecord) -> bool:
    """Cheap first pass on list data so bars are only fetched for plausible picks."""

    if quote is None:
        return False
    return (
        exclude_st(quote)
        and exclude_delisted(quote)
        and quote.market_cap >= MARKET_CAP_MIN
        and 0 < quote.pe <= PE_MAX
        and TREND_TURNOVER_MIN <= quote.turnover_rate <= TREND_TURNOVER_MAX
        and quote.volume_ratio >= TREND_VOLUME_RATIO_MIN
    )


STRATEGIES: dict[str, Callable[[], Criterion]] = {
    "trend": trend_momentum_strategy,
    "default": default_strategy,
}


def get_strategy(name: str) -> Criterion:
    try:
        return STRATEGIES[name]()
    except KeyError:
        raise ValueError(f"unknown strategy: {name} (choose from {', '.join(STRATEGIES)})") from None
