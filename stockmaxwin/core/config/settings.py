"""
Configuration management for stockmaxwin.

Settings are read once at process start from environment variables
(``STOCKMAXWIN_`` prefix), an optional ``.env`` file and an optional TOML
file. Components never read the environment themselves; they receive the
values below at construction time.
"""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stockmaxwin.core.exceptions import ConfigurationError
from stockmaxwin.core.patterns.pacing import DEFAULT_MAX_CONCURRENT, MAX_CONCURRENT_CAP

DEFAULT_API_DELAY_MS = 200
DEFAULT_API_JITTER_MS = 150
DEFAULT_CONCURRENCY = 10

CONFIG_PATH_ENV = "STOCKMAXWIN_CONFIG"


class Settings(BaseSettings):
    """Main stockmaxwin configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STOCKMAXWIN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # 防封：请求间隔、抖动、并发上限
    api_delay_ms: int = Field(DEFAULT_API_DELAY_MS, description="Minimum gap between request starts")
    api_jitter_ms: int = Field(DEFAULT_API_JITTER_MS, description="Upper bound of random extra gap")
    api_max_concurrent: int = Field(DEFAULT_MAX_CONCURRENT, description="In-flight request ceiling")

    http_timeout: float = Field(5.0, description="Per-request timeout in seconds")
    max_attempts: int = Field(3, description="Attempts per request, including the first")
    retry_delay: float = Field(0.5, description="Backoff before an ordinary retry")
    rate_limit_delay: float = Field(5.0, description="Backoff after an HTTP 429")

    concurrency: int = Field(DEFAULT_CONCURRENCY, description="Worker pool size")
    run_timeout: float = Field(600.0, description="Upper bound for one screening run in seconds")
    top_n: int = Field(10, description="Number of results kept after ranking")

    log_level: str = Field("INFO", description="Log level")
    log_format: str = Field("json", description="json or text")

    @field_validator("api_delay_ms", mode="before")
    @classmethod
    def _positive_delay(cls, value: Any) -> int:
        parsed = _parse_int(value, DEFAULT_API_DELAY_MS)
        return parsed if parsed > 0 else DEFAULT_API_DELAY_MS

    @field_validator("api_jitter_ms", mode="before")
    @classmethod
    def _non_negative_jitter(cls, value: Any) -> int:
        parsed = _parse_int(value, DEFAULT_API_JITTER_MS)
        return parsed if parsed >= 0 else DEFAULT_API_JITTER_MS

    @field_validator("api_max_concurrent", mode="before")
    @classmethod
    def _capped_concurrent(cls, value: Any) -> int:
        parsed = _parse_int(value, DEFAULT_MAX_CONCURRENT)
        if parsed <= 0:
            return DEFAULT_MAX_CONCURRENT
        return min(parsed, MAX_CONCURRENT_CAP)

    @field_validator("concurrency", mode="before")
    @classmethod
    def _positive_concurrency(cls, value: Any) -> int:
        parsed = _parse_int(value, DEFAULT_CONCURRENCY)
        return parsed if parsed > 0 else DEFAULT_CONCURRENCY

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {"json", "text"}:
            raise ValueError("log_format must be 'json' or 'text'")
        return normalized

    @property
    def request_gap(self) -> float:
        """Minimum request spacing in seconds."""
        return self.api_delay_ms / 1000.0

    @property
    def jitter_max(self) -> float:
        """Jitter ceiling in seconds."""
        return self.api_jitter_ms / 1000.0

    @classmethod
    def build(cls, source: str = "environment", /, **values: Any) -> Settings:
        """Construct settings, reporting invalid values as ``ConfigurationError``."""
        try:
            return cls(**values)
        except ValidationError as exc:
            errors = [f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()]
            raise ConfigurationError(
                f"Invalid configuration from {source}",
                details={"source": source, "errors": errors},
            ) from exc

    @classmethod
    def load_from_file(cls, config_path: Path) -> Settings:
        """Load configuration from a TOML file; file values win over the environment."""
        if not config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {config_path}",
                details={"path": str(config_path)},
            )

        try:
            with open(config_path, "rb") as f:
                config_data = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(
                f"Invalid configuration file {config_path}: {exc}",
                details={"path": str(config_path)},
            ) from exc
        return cls.build(str(config_path), **config_data)


def _parse_int(value: Any, default: int) -> int:
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings, honouring ``STOCKMAXWIN_CONFIG`` when set."""

    config_path = os.getenv(CONFIG_PATH_ENV)
    if config_path:
        return Settings.load_from_file(Path(config_path))
    return Settings.build()
