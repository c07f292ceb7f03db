"""行情记录模型.

Each list record type declares its wire schema explicitly: ``WIRE_FIELDS``
maps the opaque EastMoney field codes to model attributes, and
``from_wire`` is the single decode step from a flat mapping of scalars.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field

# 成交量单位为“手”，一手 100 股
LOT_SIZE = 100


def as_float(value: Any) -> float:
    """Coerce a wire scalar to float; EastMoney sends ``"-"`` for missing values."""

    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return 0.0


def as_int(value: Any) -> int:
    """Coerce a wire scalar to int, truncating decimals."""

    return int(as_float(value))


def as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


class BriefRecord(BaseModel):
    """全市场列表单条：仅代码与名称."""

    model_config = ConfigDict(frozen=True)

    WIRE_FIELDS: ClassVar[Mapping[str, str]] = {"f12": "code", "f14": "name"}

    code: str = Field(min_length=1)
    name: str = ""

    @classmethod
    def from_wire(cls, raw: Mapping[str, Any]) -> BriefRecord | None:
        """Build a record from wire fields, or ``None`` when the code is empty."""

        code = as_text(raw.get("f12"))
        if not code:
            return None
        return cls(code=code, name=as_text(raw.get("f14")))


class QuoteRecord(BaseModel):
    """主板列表单条行情：现价、涨跌幅、成交额、量比、换手、市值、PE、资金流."""

    model_config = ConfigDict(frozen=True)

    # f2 现价 f3 涨跌幅(%) f6 成交量 f8 换手 f9 市盈率 f10 量比 f12 代码 f14 名称
    # f20 总市值 f23 成交额 f62 净流入 f66 主力流出 f184 主力流入
    WIRE_FIELDS: ClassVar[Mapping[str, str]] = {
        "f2": "price",
        "f3": "change_pct",
        "f6": "volume",
        "f8": "turnover_rate",
        "f9": "pe",
        "f10": "volume_ratio",
        "f12": "code",
        "f14": "name",
        "f20": "market_cap",
        "f23": "amount",
        "f62": "net_inflow",
        "f66": "main_force_outflow",
        "f184": "main_force_inflow",
    }

    code: str = Field(min_length=1)
    name: str = ""
    price: float = 0.0
    change_pct: float = 0.0
    amount: float = 0.0
    volume: int = 0
    volume_ratio: float = 0.0
    turnover_rate: float = 0.0
    market_cap: float = 0.0
    pe: float = 0.0
    net_inflow: float = 0.0
    main_force_inflow: float = 0.0
    main_force_outflow: float = 0.0

    @classmethod
    def from_wire(cls, raw: Mapping[str, Any]) -> QuoteRecord | None:
        """Build a quote from wire fields, or ``None`` when the code is empty.

        Amount is recomputed from volume (in lots) and price when the feed
        reports a non-positive value; a negative P/E means "no valid ratio"
        and is normalized to zero.
        """

        code = as_text(raw.get("f12"))
        if not code:
            return None

        price = as_float(raw.get("f2"))
        volume = as_int(raw.get("f6"))
        amount = as_float(raw.get("f23"))
        if amount <= 0 and volume > 0 and price > 0:
            amount = volume * LOT_SIZE * price
        pe = as_float(raw.get("f9"))
        if pe < 0:
            pe = 0.0

        return cls(
            code=code,
            name=as_text(raw.get("f14")),
            price=price,
            change_pct=as_float(raw.get("f3")),
            amount=amount,
            volume=volume,
            volume_ratio=as_float(raw.get("f10")),
            turnover_rate=as_float(raw.get("f8")),
            market_cap=as_float(raw.get("f20")),
            pe=pe,
            net_inflow=as_float(raw.get("f62")),
            main_force_inflow=as_float(raw.get("f184")),
            main_force_outflow=as_float(raw.get("f66")),
        )


class Bar(BaseModel):
    """单日 K 线：日期、开盘、收盘、成交量."""

    model_config = ConfigDict(frozen=True)

    date: str
    open: float = 0.0
    close: float = 0.0
    volume: int = 0

    @classmethod
    def from_kline(cls, line: str) -> Bar | None:
        """Parse ``date,open,close,high,low,volume,...``; short lines yield ``None``."""

        parts = line.strip().split(",")
        if len(parts) < 5:
            return None
        return cls(
            date=parts[0],
            open=as_float(parts[1]),
            close=as_float(parts[2]),
            volume=as_int(parts[5]) if len(parts) >= 6 else 0,
        )


class EnrichedRecord(QuoteRecord):
    """选股结果：行情 + 均线 + MA60 趋势 + MACD."""

    ma5: float = 0.0
    ma10: float = 0.0
    ma20: float = 0.0
    ma60: float = 0.0
    ma60_up: bool = False
    macd_histogram: float = 0.0
    macd_histogram_prev: float = 0.0
    macd_golden_cross: bool = False


class IndexQuote(BaseModel):
    """大盘指数行情."""

    model_config = ConfigDict(frozen=True)

    # ulist 接口的 f3 多为“百分比×100”，绝对值超过该阈值时按 100 缩放
    CHANGE_PCT_SCALED_ABOVE: ClassVar[float] = 20.0
    CHANGE_PCT_DIVISOR: ClassVar[float] = 100.0

    code: str
    name: str = ""
    price: float = 0.0
    change_pct: float = 0.0

    @classmethod
    def from_wire(cls, raw: Mapping[str, Any]) -> IndexQuote | None:
        code = as_text(raw.get("f12"))
        name = as_text(raw.get("f14"))
        if not code and not name:
            return None
        change_pct = as_float(raw.get("f3"))
        if abs(change_pct) > cls.CHANGE_PCT_SCALED_ABOVE:
            change_pct /= cls.CHANGE_PCT_DIVISOR
        return cls(code=code, name=name, price=as_float(raw.get("f2")), change_pct=change_pct)
