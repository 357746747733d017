"""Configuration loading from environment variables."""

from __future__ import annotations

import os
from urllib.parse import urlparse

from opswatch.models.config import (
    APIConfig,
    LogConfig,
    MetricsConfig,
    OpsWatchConfig,
    ReconnectConfig,
    StreamConfig,
)
from opswatch.observability.logging import LOG_FORMATS


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"OPSWATCH_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float = 0.0) -> float:
    return max(float(_env(key, str(default))), min_val)


def _validate_url(value: str, schemes: set[str]) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in schemes or not parsed.netloc:
        raise ValueError(f"Invalid URL: {value!r}. Scheme must be one of {sorted(schemes)}")
    return value.rstrip("/") if parsed.scheme in ("http", "https") else value


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_log_format(value: str) -> str:
    if value.lower() not in LOG_FORMATS:
        raise ValueError(f"Invalid log format: {value}. Must be one of {LOG_FORMATS}")
    return value.lower()


def load_config() -> OpsWatchConfig:
    """Load configuration from OPSWATCH_* environment variables."""
    reconnect = ReconnectConfig(
        enabled=_env_bool("RECONNECT_ENABLED", True),
        initial_delay=_env_float("RECONNECT_INITIAL_DELAY", 1.0, min_val=0.05),
        max_delay=_env_float("RECONNECT_MAX_DELAY", 30.0, min_val=0.05),
        max_attempts=_env_int("RECONNECT_MAX_ATTEMPTS", 0, min_val=0),
    )
    if reconnect.max_delay < reconnect.initial_delay:
        raise ValueError(
            f"OPSWATCH_RECONNECT_MAX_DELAY ({reconnect.max_delay}) must be >= "
            f"OPSWATCH_RECONNECT_INITIAL_DELAY ({reconnect.initial_delay})"
        )
    return OpsWatchConfig(
        stream=StreamConfig(
            events_url=_validate_url(_env("EVENTS_URL", "ws://127.0.0.1:1234/ws"), {"ws", "wss"}),
            connect_timeout=_env_float("CONNECT_TIMEOUT", 10.0, min_val=1.0),
            command_ack_timeout=_env_float("COMMAND_ACK_TIMEOUT", 0.0),
        ),
        reconnect=reconnect,
        api=APIConfig(
            base_url=_validate_url(_env("API_BASE_URL", "http://127.0.0.1:1234"), {"http", "https"}),
            timeout_seconds=_env_float("API_TIMEOUT", 10.0, min_val=1.0),
        ),
        metrics=MetricsConfig(
            port=_env_int("METRICS_PORT", 0, min_val=0, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
            format=_validate_log_format(_env("LOG_FORMAT", "json")),
        ),
    )
