"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class StreamConfig:
    """Event channel configuration."""

    events_url: str = "ws://127.0.0.1:1234/ws"
    connect_timeout: float = 10.0
    command_ack_timeout: float = 0.0


@dataclass
class ReconnectConfig:
    """Reconnection policy applied when the event channel drops."""

    enabled: bool = True
    initial_delay: float = 1.0
    max_delay: float = 30.0
    max_attempts: int = 0


@dataclass
class APIConfig:
    """Dashboard REST API client configuration."""

    base_url: str = "http://127.0.0.1:1234"
    timeout_seconds: float = 10.0


@dataclass
class MetricsConfig:
    """Prometheus exporter configuration.  Port 0 disables the exporter."""

    port: int = 0


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    format: str = "json"


@dataclass
class OpsWatchConfig:
    """Top-level opswatch configuration."""

    stream: StreamConfig = field(default_factory=StreamConfig)
    reconnect: ReconnectConfig = field(default_factory=ReconnectConfig)
    api: APIConfig = field(default_factory=APIConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    log: LogConfig = field(default_factory=LogConfig)
