"""Watcher table: the single source of truth for watcher rows.

Rows are keyed by ``WatcherKey`` and updated incrementally from decoded
events.  Per-key state machine::

    Absent --Snapshot--> Active --Delta--> Active --Removed--> Absent
                         Active --Snapshot--> Active (counters reset)

All mutation happens on the event loop thread, so ``apply`` calls are
serialized without locking.  Rows are frozen dataclasses replaced wholesale;
subscribers receive immutable tuples of rows and never a handle into the
table's own store.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from dataclasses import replace

from opswatch.models.watchers import Delta, Removed, Snapshot, WatcherEvent, WatcherKey, WatcherState
from opswatch.observability.logging import get_logger
from opswatch.observability.metrics import (
    events_applied_total,
    events_dropped_total,
    watcher_resets_total,
    watchers,
)
from opswatch.stream.errors import ApplyWarning, StaleDeltaWarning, UnknownKeyWarning

_log = get_logger("stream.table")

TableSnapshot = tuple[WatcherState, ...]
Listener = Callable[[TableSnapshot], None]


class WatcherTable:
    """In-memory keyed store of watcher state with publish/subscribe."""

    def __init__(self) -> None:
        self._rows: dict[WatcherKey, WatcherState] = {}
        self._listeners: list[Listener] = []
        self._queues: list[asyncio.Queue[TableSnapshot | None]] = []
        self._completed = False

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, key: object) -> bool:
        return key in self._rows

    @property
    def completed(self) -> bool:
        return self._completed

    def get(self, key: WatcherKey) -> WatcherState | None:
        return self._rows.get(key)

    def snapshot_all(self) -> TableSnapshot:
        """Return every row ordered by (namespace, resource)."""
        return tuple(self._rows[key] for key in sorted(self._rows))

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def apply(self, event: WatcherEvent) -> ApplyWarning | None:
        """Apply one event and publish the resulting table.

        Returns None when the event was applied (or was a no-op removal), or
        the warning explaining why it was dropped.  Dropped events leave the
        table untouched and publish nothing.
        """
        if isinstance(event, Snapshot):
            self._apply_snapshot(event)
            variant = "snapshot"
        elif isinstance(event, Delta):
            warning = self._apply_delta(event)
            if warning is not None:
                events_dropped_total.labels(reason=warning.reason).inc()
                _log.warning(
                    warning.log_event,
                    namespace=event.key.namespace,
                    resource=event.key.resource,
                    detail=str(warning),
                )
                return warning
            variant = "delta"
        elif isinstance(event, Removed):
            if self._rows.pop(event.key, None) is None:
                _log.debug("remove_for_absent_watcher", namespace=event.key.namespace, resource=event.key.resource)
                return None
            variant = "removed"
        else:
            raise TypeError(f"not a watcher event: {event!r}")

        events_applied_total.labels(variant=variant).inc()
        self._publish()
        return None

    def _apply_snapshot(self, event: Snapshot) -> None:
        previous = self._rows.get(event.key)
        self._rows[event.key] = event.state
        if previous is not None and (
            event.state.handled_event_count < previous.handled_event_count
            or event.state.total_event_count < previous.total_event_count
        ):
            watcher_resets_total.inc()
            _log.info(
                "watcher_reset",
                namespace=event.key.namespace,
                resource=event.key.resource,
                previous_handled=previous.handled_event_count,
                handled=event.state.handled_event_count,
            )

    def _apply_delta(self, event: Delta) -> ApplyWarning | None:
        current = self._rows.get(event.key)
        if current is None:
            return UnknownKeyWarning(event.key)

        updated = replace(current, **event.fields.changes())
        if updated.handled_event_count < current.handled_event_count:
            return StaleDeltaWarning(
                event.key, "handled_event_count", current.handled_event_count, updated.handled_event_count
            )
        if updated.total_event_count < current.total_event_count:
            return StaleDeltaWarning(
                event.key, "total_event_count", current.total_event_count, updated.total_event_count
            )
        self._rows[event.key] = updated
        return None

    # ------------------------------------------------------------------
    # Publication
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a synchronous listener called after every applied event.

        Returns a callable that removes the listener.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def updates(self) -> AsyncIterator[TableSnapshot]:
        """Yield each published table snapshot until ``complete()`` is called."""
        if self._completed:
            return
        queue: asyncio.Queue[TableSnapshot | None] = asyncio.Queue()
        self._queues.append(queue)
        try:
            while True:
                view = await queue.get()
                if view is None:
                    return
                yield view
        finally:
            if queue in self._queues:
                self._queues.remove(queue)

    def complete(self) -> None:
        """End every subscription.  Rows are kept as the last known state."""
        if self._completed:
            return
        self._completed = True
        self._listeners.clear()
        for queue in self._queues:
            queue.put_nowait(None)
        self._queues.clear()
        _log.debug("table_subscriptions_completed", rows=len(self._rows))

    def _publish(self) -> None:
        view = self.snapshot_all()
        running = sum(1 for row in view if row.running)
        watchers.labels(state="running").set(running)
        watchers.labels(state="stopped").set(len(view) - running)

        if self._completed:
            return
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception as exc:  # noqa: BLE001
                _log.error("table_listener_error", listener=repr(listener), error=str(exc))
        for queue in self._queues:
            queue.put_nowait(view)
