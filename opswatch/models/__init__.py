"""Core data structures for opswatch."""

from opswatch.models.commands import CommandAction, ControlMessage
from opswatch.models.config import OpsWatchConfig
from opswatch.models.resources import ResourceKind, ResourceScope
from opswatch.models.watchers import (
    Delta,
    Removed,
    Snapshot,
    Stats,
    WatcherDelta,
    WatcherEvent,
    WatcherKey,
    WatcherState,
)

__all__ = [
    "CommandAction",
    "ControlMessage",
    "Delta",
    "OpsWatchConfig",
    "Removed",
    "ResourceKind",
    "ResourceScope",
    "Snapshot",
    "Stats",
    "WatcherDelta",
    "WatcherEvent",
    "WatcherKey",
    "WatcherState",
]
