"""Screening services: indicators, strategies, worker pipeline and runs."""

from stockmaxwin.core.services.indicators import (
    IndicatorSnapshot,
    MacdResult,
    compute_macd,
    derive_indicators,
    ema,
    ma60_trend_up,
    moving_average,
)
from stockmaxwin.core.services.pipeline import (
    Channel,
    ChannelClosed,
    PipelineConfig,
    WorkerPool,
    default_predicate,
)
from stockmaxwin.core.services.screening import ScreeningResult, ScreeningService
from stockmaxwin.core.services.strategy import (
    all_of,
    any_of,
    default_strategy,
    get_strategy,
    quote_pre_filter,
    trend_momentum_strategy,
)

__all__ = [
    "Channel",
    "ChannelClosed",
    "IndicatorSnapshot",
    "MacdResult",
    "PipelineConfig",
    "ScreeningResult",
    "ScreeningService",
    "WorkerPool",
    "all_of",
    "any_of",
    "compute_macd",
    "default_predicate",
    "default_strategy",
    "derive_indicators",
    "ema",
    "get_strategy",
    "ma60_trend_up",
    "moving_average",
    "quote_pre_filter",
    "trend_momentum_strategy",
]
