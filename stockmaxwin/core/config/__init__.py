"""Configuration module."""

from stockmaxwin.core.config.settings import (
    CONFIG_PATH_ENV,
    DEFAULT_CONCURRENCY,
    DEFAULT_MAX_CONCURRENT,
    MAX_CONCURRENT_CAP,
    Settings,
    get_settings,
)

__all__ = [
    "CONFIG_PATH_ENV",
    "DEFAULT_CONCURRENCY",
    "DEFAULT_MAX_CONCURRENT",
    "MAX_CONCURRENT_CAP",
    "Settings",
    "get_settings",
]
