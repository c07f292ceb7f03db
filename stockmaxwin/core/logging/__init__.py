"""Logging utilities with per-run trace ids."""

from stockmaxwin.core.logging.config import LogConfig
from stockmaxwin.core.logging.logger import (
    configure_logging,
    current_trace_id,
    get_logger,
    log_context,
    logger,
    new_trace_id,
)

__all__ = [
    "LogConfig",
    "configure_logging",
    "current_trace_id",
    "get_logger",
    "log_context",
    "logger",
    "new_trace_id",
]
