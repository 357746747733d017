"""Watcher event stream reconciliation engine.

Submodules:
    transport -- Websocket event channel with shared subscriptions.
    decoder   -- Raw frame to Snapshot / Delta / Removed event.
    table     -- Keyed watcher state store with publish/subscribe.
    stats     -- Total / running / stopped counters derived from the table.
    commands  -- Start / stop control messages.
    reconnect -- Exponential back-off policy for dropped channels.
    engine    -- Wires the above into one context object.
"""

from opswatch.stream.commands import CommandSender
from opswatch.stream.decoder import decode
from opswatch.stream.engine import WatchStreamEngine
from opswatch.stream.errors import (
    ApplyWarning,
    ConnectionFailedError,
    ConnectionLost,
    DecodeError,
    NotConnectedError,
    StaleDeltaWarning,
    UnknownKeyWarning,
)
from opswatch.stream.reconnect import ReconnectPolicy
from opswatch.stream.stats import StatsAggregator, compute
from opswatch.stream.table import WatcherTable
from opswatch.stream.transport import Transport

__all__ = [
    "ApplyWarning",
    "CommandSender",
    "ConnectionFailedError",
    "ConnectionLost",
    "DecodeError",
    "NotConnectedError",
    "ReconnectPolicy",
    "StaleDeltaWarning",
    "StatsAggregator",
    "Transport",
    "UnknownKeyWarning",
    "WatchStreamEngine",
    "WatcherTable",
    "compute",
    "decode",
]
