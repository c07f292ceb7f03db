"""Market data providers."""

from stockmaxwin.core.providers.eastmoney import (
    EastMoneyProvider,
    Paginator,
    format_code,
)

__all__ = ["EastMoneyProvider", "Paginator", "format_code"]
