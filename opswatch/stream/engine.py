"""Watch stream engine: wires transport → decoder → table → stats.

The engine is the context object the dashboard constructs once and passes
to whatever needs the watcher state or the command sender.  ``run()`` pumps
frames into the table until the transport is closed or reconnection gives
up, then completes every table and stats subscription.  The table keeps its
last known rows either way.
"""

from __future__ import annotations

import asyncio

from opswatch.models.config import OpsWatchConfig
from opswatch.models.watchers import Stats
from opswatch.observability.logging import get_logger
from opswatch.observability.metrics import decode_errors_total, reconnect_attempts_total
from opswatch.stream.commands import CommandSender
from opswatch.stream.decoder import decode
from opswatch.stream.errors import ApplyWarning, ConnectionFailedError, DecodeError
from opswatch.stream.reconnect import ReconnectPolicy
from opswatch.stream.stats import StatsAggregator
from opswatch.stream.table import WatcherTable
from opswatch.stream.transport import Frame, Transport

_log = get_logger("stream.engine")


class WatchStreamEngine:
    """Owns the event channel and the state derived from it.

    Args:
        transport:     Transport for the event channel.
        reconnect:     Policy applied when the channel drops or cannot be
                       opened.  Defaults to no reconnection.
        initial_stats: Stats to report before the first table publish.
        ack_timeout:   Default command acknowledgment wait (see CommandSender).
    """

    def __init__(
        self,
        transport: Transport,
        reconnect: ReconnectPolicy | None = None,
        initial_stats: Stats | None = None,
        ack_timeout: float | None = None,
    ) -> None:
        self.transport = transport
        self.table = WatcherTable()
        self.stats = StatsAggregator(self.table, initial=initial_stats)
        self.commands = CommandSender(transport, table=self.table, ack_timeout=ack_timeout)
        self._reconnect = reconnect or ReconnectPolicy(enabled=False)
        self._stopping = False
        self._stop_event = asyncio.Event()

    @classmethod
    def from_config(cls, config: OpsWatchConfig, initial_stats: Stats | None = None) -> WatchStreamEngine:
        transport = Transport(config.stream.events_url, connect_timeout=config.stream.connect_timeout)
        return cls(
            transport,
            reconnect=ReconnectPolicy.from_config(config.reconnect),
            initial_stats=initial_stats,
            ack_timeout=config.stream.command_ack_timeout or None,
        )

    def handle_frame(self, raw: Frame) -> DecodeError | ApplyWarning | None:
        """Decode and apply one frame.  Returns the problem, if any."""
        result = decode(raw)
        if isinstance(result, DecodeError):
            decode_errors_total.inc()
            _log.warning("decode_error", reason=result.reason, frame=result.preview)
            return result
        return self.table.apply(result)

    async def run(self) -> None:
        """Consume the event channel until closed or reconnection is exhausted."""
        try:
            while not self._stopping:
                try:
                    await self.transport.connect()
                except ConnectionFailedError as exc:
                    _log.warning("connect_failed", url=self.transport.url, error=str(exc.cause))
                    if not await self._backoff():
                        break
                    continue

                if self._stopping:
                    await self.transport.close()
                    break
                self._reconnect.reset()

                async for raw in self.transport.frames():
                    self.handle_frame(raw)

                lost = self.transport.connection_lost
                if lost is None or self._stopping:
                    break
                _log.warning("stream_interrupted", error=str(lost), rows_retained=len(self.table))
                if not await self._backoff():
                    break
        finally:
            self.table.complete()
            self.stats.complete()
            _log.info("watch_stream_stopped", rows=len(self.table))

    async def close(self) -> None:
        """Stop ``run()`` and close the event channel."""
        self._stopping = True
        self._stop_event.set()
        await self.transport.close()

    async def _backoff(self) -> bool:
        delay = self._reconnect.next_delay()
        if delay is None:
            _log.warning(
                "reconnect_abandoned",
                enabled=self._reconnect.enabled,
                attempts=self._reconnect.attempts,
            )
            return False
        reconnect_attempts_total.inc()
        _log.info("reconnect_scheduled", delay_s=round(delay, 2), attempt=self._reconnect.attempts)
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except TimeoutError:
            pass
        return not self._stopping
