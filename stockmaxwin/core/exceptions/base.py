"""stockmaxwin核心异常类."""

from typing import Any

from stockmaxwin.core.exceptions.codes import ErrorCode


class StockMaxWinError(Exception):
    """stockmaxwin基础异常类."""

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCode.GENERAL_ERROR.value,
        details: dict[str, Any] | None = None,
    ):
        """初始化异常.

        Args:
            message: 错误消息
            error_code: 错误代码
            details: 额外详情
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        """Return a serializable payload representing the error."""

        payload: dict[str, Any] = {"code": self.error_code, "message": self.message}
        if self.details:
            payload["details"] = dict(self.details)
        return payload


class ConfigurationError(StockMaxWinError):
    """配置或组件装配错误，调用方决定是否中止."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR.value, details)


class ProviderError(StockMaxWinError):
    """数据提供商相关异常."""

    def __init__(
        self,
        message: str,
        provider_name: str,
        error_code: str = ErrorCode.PROVIDER_ERROR.value,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code, details)
        self.provider_name = provider_name


class NetworkError(ProviderError):
    """网络或 HTTP 状态异常（可重试）."""

    def __init__(
        self,
        message: str,
        provider_name: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
        error_code: str = ErrorCode.NETWORK_ERROR.value,
    ):
        super_details = details or {}
        if status_code is not None:
            super_details["status_code"] = status_code
        super().__init__(message, provider_name, error_code, super_details)
        self.status_code = status_code


class RateLimitError(NetworkError):
    """速率限制异常（HTTP 429）."""

    def __init__(
        self,
        message: str,
        provider_name: str,
        retry_after: float | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if retry_after is not None:
            super_details["retry_after"] = retry_after
        super().__init__(
            message,
            provider_name,
            status_code=429,
            details=super_details,
            error_code=ErrorCode.RATE_LIMIT_ERROR.value,
        )
        self.retry_after = retry_after


class ResponseDecodeError(ProviderError):
    """响应体格式异常，不重试，直接向上传播."""

    def __init__(
        self,
        message: str,
        provider_name: str = "eastmoney",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, provider_name, ErrorCode.DECODE_ERROR.value, details)
