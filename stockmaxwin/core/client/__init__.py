"""HTTP transport for market-data endpoints."""

from stockmaxwin.core.client.transport import (
    DEFAULT_HEADERS,
    MAX_LOG_BODY_CHARS,
    ResponseBody,
    RetryingTransport,
    truncate_for_log,
)

__all__ = [
    "DEFAULT_HEADERS",
    "MAX_LOG_BODY_CHARS",
    "ResponseBody",
    "RetryingTransport",
    "truncate_for_log",
]
