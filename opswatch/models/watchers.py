"""Watcher table data structures and the decoded event variants."""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime

CLUSTER_SCOPE_LABEL = "All"


@dataclass(frozen=True, order=True)
class WatcherKey:
    """Identifies one watcher: a resource kind within one namespace scope.

    ``namespace`` is the empty string for cluster-scoped watchers.  Ordering is
    (namespace, resource), which is the row order of the watcher table.
    """

    namespace: str
    resource: str

    @property
    def display_namespace(self) -> str:
        """Namespace as shown to operators ("All" for the cluster scope)."""
        return self.namespace or CLUSTER_SCOPE_LABEL

    def to_dict(self) -> dict[str, str]:
        return {"namespace": self.namespace, "resource": self.resource}

    def __str__(self) -> str:
        return f"{self.display_namespace}/{self.resource}"


@dataclass(frozen=True)
class WatcherState:
    """One row of the watcher table.

    Immutable: the table replaces rows wholesale, so a reader always sees
    either the pre-update or the post-update row.
    """

    key: WatcherKey
    running: bool = False
    queue_non_empty: bool = False
    handled_event_count: int = 0
    unhandled_event_count: int = 0
    last_event_timestamp: datetime | None = None

    def __post_init__(self) -> None:
        if self.handled_event_count < 0 or self.unhandled_event_count < 0:
            raise ValueError(f"event counts must be non-negative for watcher {self.key}")

    @property
    def total_event_count(self) -> int:
        return self.handled_event_count + self.unhandled_event_count


@dataclass(frozen=True)
class WatcherDelta:
    """Field-level update for an existing row.  ``None`` means unchanged."""

    running: bool | None = None
    queue_non_empty: bool | None = None
    handled_event_count: int | None = None
    unhandled_event_count: int | None = None
    last_event_timestamp: datetime | None = None

    def changes(self) -> dict[str, object]:
        """Return only the fields this delta sets."""
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}

    def is_empty(self) -> bool:
        return not self.changes()


@dataclass(frozen=True)
class Snapshot:
    """Full state for one key: initial sync or watcher restart."""

    key: WatcherKey
    state: WatcherState

    def __post_init__(self) -> None:
        if self.state.key != self.key:
            raise ValueError(f"snapshot key {self.key} does not match state key {self.state.key}")


@dataclass(frozen=True)
class Delta:
    """Partial update for an already-known key."""

    key: WatcherKey
    fields: WatcherDelta


@dataclass(frozen=True)
class Removed:
    """The watcher for ``key`` no longer exists."""

    key: WatcherKey


WatcherEvent = Snapshot | Delta | Removed


@dataclass(frozen=True)
class Stats:
    """Aggregate watcher counters.  Derived from the table, never mutated."""

    total: int = 0
    running: int = 0
    stopped: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"total": self.total, "running": self.running, "stopped": self.stopped}

