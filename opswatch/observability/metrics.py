"""Prometheus metrics for the watcher stream engine."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, start_http_server

frames_received_total = Counter(
    "opswatch_frames_received_total",
    "Raw frames received on the event channel.",
)

decode_errors_total = Counter(
    "opswatch_decode_errors_total",
    "Inbound frames dropped because they could not be decoded.",
)

events_applied_total = Counter(
    "opswatch_events_applied_total",
    "Watcher events applied to the watcher table.",
    ["variant"],
)

events_dropped_total = Counter(
    "opswatch_events_dropped_total",
    "Watcher events dropped by the watcher table.",
    ["reason"],
)

watcher_resets_total = Counter(
    "opswatch_watcher_resets_total",
    "Snapshots that lowered a watcher's event counters.",
)

watchers = Gauge(
    "opswatch_watchers",
    "Watchers currently known, by state.",
    ["state"],
)

connections_total = Counter(
    "opswatch_connections_total",
    "Event channel connection attempts, by outcome.",
    ["outcome"],
)

connection_lost_total = Counter(
    "opswatch_connection_lost_total",
    "Unexpected event channel disconnections.",
)

reconnect_attempts_total = Counter(
    "opswatch_reconnect_attempts_total",
    "Scheduled event channel reconnection attempts.",
)

commands_total = Counter(
    "opswatch_commands_total",
    "Control commands, by action and outcome.",
    ["action", "outcome"],
)


def start_metrics_server(port: int) -> None:
    """Expose the default registry over HTTP on *port*."""
    start_http_server(port)
