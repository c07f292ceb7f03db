"""Structured logging utilities with trace propagation.

Every log line carries the ``trace_id`` of the run that produced it, so a
single screening pass can be grepped out of interleaved worker output.
"""

from __future__ import annotations

import json
import os
import sys
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import IO, Any, Iterator
from uuid import uuid4

from loguru import logger

from stockmaxwin.core.logging.config import LogConfig

_TRACE_ID_BYTES = 4
_TRACE_ID_EMPTY = "-"
_RESERVED_EXTRA = {"trace_id", "error_code", "provider"}

_TRACE_ID_VAR: ContextVar[str | None] = ContextVar("stockmaxwin_trace_id", default=None)
_CONTEXT_VAR: ContextVar[dict[str, Any]] = ContextVar("stockmaxwin_log_context", default={})


def new_trace_id() -> str:
    """Return a short random correlation id (8 hex chars)."""

    return uuid4().hex[: _TRACE_ID_BYTES * 2]


def _ensure_trace_id() -> str:
    trace_id = _TRACE_ID_VAR.get()
    if trace_id is None:
        trace_id = new_trace_id()
        _TRACE_ID_VAR.set(trace_id)
    return trace_id


def _patch_record(record: dict[str, Any]) -> None:
    extra = record.setdefault("extra", {})
    if not extra.get("trace_id"):
        extra["trace_id"] = _TRACE_ID_VAR.get() or _TRACE_ID_EMPTY

    context_values = _CONTEXT_VAR.get({})
    for key, value in context_values.items():
        if key == "trace_id":
            continue
        if extra.get(key) is None:
            extra[key] = value

    extra.setdefault("provider", None)
    extra.setdefault("error_code", None)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _level_name(record: dict[str, Any]) -> str:
    level_value = record.get("level")
    if level_value is None:
        return "INFO"
    return getattr(level_value, "name", str(level_value))


def _context_of(record: dict[str, Any]) -> dict[str, Any]:
    extra = record.get("extra", {})
    return {k: v for k, v in extra.items() if k not in _RESERVED_EXTRA and k != "logger_name"}


def _format_exception(record: dict[str, Any]) -> str | None:
    exception = record.get("exception")
    if not exception:
        return None
    return "".join(traceback.format_exception(exception.type, exception.value, exception.traceback))


def _format_payload(record: dict[str, Any]) -> dict[str, Any]:
    extra = record.get("extra", {})
    payload: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": _level_name(record),
        "message": record.get("message"),
        "trace_id": extra.get("trace_id"),
        "error_code": extra.get("error_code"),
        "provider": extra.get("provider"),
    }
    if extra.get("logger_name"):
        payload["logger"] = extra["logger_name"]
    context = _context_of(record)
    if context:
        payload["context"] = context
    formatted = _format_exception(record)
    if formatted:
        payload["exception"] = formatted
    return payload


def _format_line(record: dict[str, Any]) -> str:
    extra = record.get("extra", {})
    line = "{} {:<7} TRACE={} | {}".format(
        record["time"].strftime("%Y-%m-%d %H:%M:%S"),
        _level_name(record),
        extra.get("trace_id") or _TRACE_ID_EMPTY,
        record.get("message"),
    )
    formatted = _format_exception(record)
    if formatted:
        line = f"{line}\n{formatted.rstrip()}"
    return line


class _StreamJsonSink:
    """Sink writing structured JSON payloads to a text stream."""

    def __init__(self, stream: IO[str]) -> None:
        self._stream = stream

    def __call__(self, message: Any) -> None:
        payload = _format_payload(message.record)
        self._stream.write(json.dumps(payload, default=_json_default, ensure_ascii=False))
        self._stream.write("\n")
        self._stream.flush()


class _StreamTextSink:
    """Sink writing ``TRACE=<id> | message`` lines for humans."""

    def __init__(self, stream: IO[str]) -> None:
        self._stream = stream

    def __call__(self, message: Any) -> None:
        self._stream.write(_format_line(message.record))
        self._stream.write("\n")
        self._stream.flush()


class _FileJsonSink:
    """Sink persisting JSON lines to a file path."""

    def __init__(self, path: str) -> None:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._path = path

    def __call__(self, message: Any) -> None:
        payload = _format_payload(message.record)
        with open(self._path, "a", encoding="utf-8") as file:
            file.write(json.dumps(payload, default=_json_default, ensure_ascii=False))
            file.write("\n")


def _configure_from_config(config: LogConfig) -> None:
    handlers: list[dict[str, Any]] = []
    if config.console_output:
        # stdout is reserved for command output
        stream = config.console_stream or sys.stderr
        sink = _StreamJsonSink(stream) if config.serialize else _StreamTextSink(stream)
        handlers.append({"sink": sink, "level": config.level.upper()})
    if config.file_output and config.file_path:
        handlers.append({"sink": _FileJsonSink(config.file_path), "level": config.level.upper()})

    configure_kwargs: dict[str, Any] = {"handlers": handlers, "patcher": _patch_record}
    if config.extra:
        configure_kwargs["extra"] = config.extra
    logger.configure(**configure_kwargs)


def configure_logging(level: str = "INFO", **kwargs: Any) -> None:
    """Configure structured logging with the provided level and options."""

    _configure_from_config(LogConfig(level=level, **kwargs))


def get_logger(name: str | None = None) -> Any:
    """Return the shared logger optionally bound to ``name``."""

    if name:
        return logger.bind(logger_name=name)
    return logger


@contextmanager
def log_context(*, trace_id: str | None = None, **extra: Any) -> Iterator[str]:
    """Propagate a trace id and extra metadata to every log call in scope.

    Tasks created inside the block inherit the context, so worker coroutines
    spawned for a run log under the run's trace id.
    """

    previous_context = _CONTEXT_VAR.get({})
    context_token = _CONTEXT_VAR.set({**previous_context, **extra})

    active_trace = trace_id or new_trace_id()
    trace_token = _TRACE_ID_VAR.set(active_trace)

    try:
        yield active_trace
    finally:
        _TRACE_ID_VAR.reset(trace_token)
        _CONTEXT_VAR.reset(context_token)


def current_trace_id() -> str:
    """Return the currently active trace id, generating one if required."""

    return _ensure_trace_id()


configure_logging()


__all__ = [
    "configure_logging",
    "current_trace_id",
    "get_logger",
    "log_context",
    "logger",
    "new_trace_id",
]
