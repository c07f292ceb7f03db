"""Exception handling module."""

from stockmaxwin.core.exceptions.base import (
    ConfigurationError,
    NetworkError,
    ProviderError,
    RateLimitError,
    ResponseDecodeError,
    StockMaxWinError,
)
from stockmaxwin.core.exceptions.codes import ErrorCode

__all__ = [
    "ConfigurationError",
    "ErrorCode",
    "NetworkError",
    "ProviderError",
    "RateLimitError",
    "ResponseDecodeError",
    "StockMaxWinError",
]
