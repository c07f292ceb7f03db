"""分级退避重试策略."""

from __future__ import annotations

from dataclasses import dataclass

from stockmaxwin.core.exceptions import ConfigurationError

HTTP_TOO_MANY_REQUESTS = 429


@dataclass(frozen=True)
class RetryPolicy:
    """重试配置.

    Ordinary failures wait ``retry_delay`` before the next attempt; when the
    previous attempt ended with HTTP 429 the wait is ``rate_limit_delay``.
    """

    max_attempts: int = 3  # 含首次请求
    retry_delay: float = 0.5  # 普通失败后的等待(秒)
    rate_limit_delay: float = 5.0  # 429 限流后的等待(秒)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")
        if self.retry_delay < 0 or self.rate_limit_delay < 0:
            raise ConfigurationError("retry delays must be non-negative")

    def delay_for(self, last_status: int | None) -> float:
        """Backoff before the next attempt given the previous attempt's status."""

        if last_status == HTTP_TOO_MANY_REQUESTS:
            return self.rate_limit_delay
        return self.retry_delay
