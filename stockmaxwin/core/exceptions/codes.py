"""Stable error codes carried by every stockmaxwin exception."""

from enum import Enum


class ErrorCode(str, Enum):
    """错误代码枚举."""

    GENERAL_ERROR = "GENERAL_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    DECODE_ERROR = "DECODE_ERROR"
