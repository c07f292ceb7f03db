"""
技术指标计算.

Pure functions over an ascending-by-date bar series: simple moving averages,
EMA, a MACD-style histogram (12/26/9) and the MA60 trend flag. All of them
are derived from one fetched series; nothing here performs I/O.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from stockmaxwin.core.models import Bar

MACD_FAST = 12
MACD_SLOW = 26
MACD_SIGNAL = 9
MACD_MIN_BARS = MACD_SLOW + MACD_SIGNAL
MA60_TREND_LOOKBACK = 5


def closes_of(series: Sequence[Bar] | Sequence[float] | np.ndarray) -> np.ndarray:
    """Closing prices as a float array; accepts bars or plain numbers."""

    if isinstance(series, np.ndarray):
        return series.astype(float, copy=False)
    if len(series) and isinstance(series[0], Bar):
        return np.fromiter((bar.close for bar in series), dtype=float, count=len(series))
    return np.asarray(series, dtype=float)


def moving_average(series: Sequence[Bar] | Sequence[float] | np.ndarray, n: int, offset: int = 0) -> float:
    """N 日均价，窗口以倒数第 ``offset`` 根 K 线为末；数据不足返回 0."""

    closes = closes_of(series)
    if n <= 0 or offset < 0 or len(closes) < n + offset:
        return 0.0
    end = len(closes) - offset
    return float(closes[end - n : end].mean())


def ema(values: Sequence[float] | np.ndarray, period: int) -> np.ndarray:
    """EMA seeded with the simple mean of the first ``period`` values.

    Positions before the seed are NaN; an empty array is returned when fewer
    than ``period`` values exist.
    """

    data = np.asarray(values, dtype=float)
    if period <= 0 or len(data) < period:
        return np.empty(0, dtype=float)
    out = np.full(len(data), np.nan)
    mult = 2.0 / (period + 1)
    out[period - 1] = data[:period].mean()
    for i in range(period, len(data)):
        out[i] = (data[i] - out[i - 1]) * mult + out[i - 1]
    return out


@dataclass(frozen=True)
class MacdResult:
    histogram: float = 0.0
    histogram_prev: float = 0.0
    golden_cross: bool = False
    defined: bool = False


def compute_macd(series: Sequence[Bar] | Sequence[float] | np.ndarray) -> MacdResult:
    """MACD 红绿柱：当日、前一日，以及最近两根是否金叉.

    The signal line is the EMA of the DIF series taken only where both EMAs
    exist. Fewer than ``MACD_MIN_BARS`` closes gives an undefined result.
    """

    closes = closes_of(series)
    n = len(closes)
    if n < MACD_MIN_BARS:
        return MacdResult()

    dif = ema(closes, MACD_FAST)[MACD_SLOW - 1 :] - ema(closes, MACD_SLOW)[MACD_SLOW - 1 :]
    dea = ema(dif, MACD_SIGNAL)
    histogram = 2.0 * (dif - dea)

    golden_cross = bool(dif[-2] <= dea[-2] and dif[-1] > dea[-1])
    return MacdResult(
        histogram=float(histogram[-1]),
        histogram_prev=float(histogram[-2]),
        golden_cross=golden_cross,
        defined=True,
    )


def ma60_trend_up(series: Sequence[Bar] | Sequence[float] | np.ndarray, lookback: int = MA60_TREND_LOOKBACK) -> bool:
    """MA60 较 ``lookback`` 日前上行."""

    closes = closes_of(series)
    before = moving_average(closes, 60, lookback)
    now = moving_average(closes, 60)
    return before > 0 and now > before


@dataclass(frozen=True)
class IndicatorSnapshot:
    ma5: float
    ma10: float
    ma20: float
    ma60: float
    ma60_up: bool
    macd: MacdResult


def derive_indicators(bars: Sequence[Bar]) -> IndicatorSnapshot:
    """Every indicator the strategies need, from a single bar series."""

    closes = closes_of(bars)
    return IndicatorSnapshot(
        ma5=moving_average(closes, 5),
        ma10=moving_average(closes, 10),
        ma20=moving_average(closes, 20),
        ma60=moving_average(closes, 60),
        ma60_up=ma60_trend_up(closes),
        macd=compute_macd(closes),
    )
