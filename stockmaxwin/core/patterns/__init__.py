"""Request pacing and retry patterns."""

from stockmaxwin.core.patterns.pacing import (
    DEFAULT_JITTER_MAX,
    DEFAULT_MAX_CONCURRENT,
    DEFAULT_REQUEST_GAP,
    MAX_CONCURRENT_CAP,
    ConcurrencyGate,
    Pacer,
    resolve_concurrency_limit,
)
from stockmaxwin.core.patterns.retry import HTTP_TOO_MANY_REQUESTS, RetryPolicy

__all__ = [
    "DEFAULT_JITTER_MAX",
    "DEFAULT_MAX_CONCURRENT",
    "DEFAULT_REQUEST_GAP",
    "HTTP_TOO_MANY_REQUESTS",
    "MAX_CONCURRENT_CAP",
    "ConcurrencyGate",
    "Pacer",
    "RetryPolicy",
    "resolve_concurrency_limit",
]
