"""Stats aggregator: total / running / stopped counters derived from the table.

``compute`` is a pure fold over a table snapshot.  ``StatsAggregator``
recomputes on every table publish and hands the result to listeners.  Stats
are a level signal, so the async ``updates()`` iterator coalesces: a slow
consumer only ever sees the latest value.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Iterable

from opswatch.models.watchers import Stats, WatcherState
from opswatch.observability.logging import get_logger
from opswatch.stream.table import TableSnapshot, WatcherTable

_log = get_logger("stream.stats")

StatsListener = Callable[[Stats], None]


def compute(snapshot: Iterable[WatcherState]) -> Stats:
    """Count watchers in *snapshot*.  ``stopped`` is ``total - running``."""
    total = 0
    running = 0
    for row in snapshot:
        total += 1
        if row.running:
            running += 1
    return Stats(total=total, running=running, stopped=total - running)


class StatsAggregator:
    """Keeps the current Stats in step with a WatcherTable.

    Args:
        table:   Table to follow.  The aggregator subscribes immediately.
        initial: Value to report until the table publishes, typically the
                 one-shot ``GET /stats`` result.  Defaults to a fold over the
                 table's current rows.
    """

    def __init__(self, table: WatcherTable, initial: Stats | None = None) -> None:
        self._current = initial if initial is not None else compute(table.snapshot_all())
        self._version = 0
        self._from_table = False
        self._completed = False
        self._listeners: list[StatsListener] = []
        self._waiters: list[asyncio.Event] = []
        self._unsubscribe = table.subscribe(self._on_table)

    @property
    def current(self) -> Stats:
        return self._current

    @property
    def completed(self) -> bool:
        return self._completed

    def seed(self, stats: Stats) -> bool:
        """Use *stats* as the current value unless the table already published.

        Returns True when the seed was taken.
        """
        if self._from_table or self._completed:
            _log.debug("stats_seed_ignored", reason="table already published")
            return False
        self._set(stats)
        return True

    def subscribe(self, listener: StatsListener) -> Callable[[], None]:
        """Register a listener called with every recomputed Stats."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def updates(self) -> AsyncIterator[Stats]:
        """Yield the current Stats, then the latest value after each change.

        Intermediate values published while the consumer is busy are skipped.
        Ends when ``complete()`` is called.
        """
        waiter = asyncio.Event()
        self._waiters.append(waiter)
        seen: int | None = None
        try:
            while True:
                waiter.clear()
                if seen != self._version:
                    seen = self._version
                    yield self._current
                    continue
                if self._completed:
                    return
                await waiter.wait()
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    def complete(self) -> None:
        """Stop following the table and end every subscription."""
        if self._completed:
            return
        self._completed = True
        self._unsubscribe()
        self._listeners.clear()
        for waiter in self._waiters:
            waiter.set()

    def _on_table(self, view: TableSnapshot) -> None:
        self._from_table = True
        self._set(compute(view))

    def _set(self, stats: Stats) -> None:
        self._current = stats
        self._version += 1
        for listener in list(self._listeners):
            try:
                listener(stats)
            except Exception as exc:  # noqa: BLE001
                _log.error("stats_listener_error", listener=repr(listener), error=str(exc))
        for waiter in self._waiters:
            waiter.set()
