"""Transport: owns the one websocket connection to the event channel.

``connect()`` is idempotent and shared: every ``frames()`` subscriber reads
from the same physical connection.  The transport never reconnects on its
own.  When the channel drops, every subscription completes and
``connection_lost`` records why; reopening is the caller's decision.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from opswatch.observability.logging import get_logger
from opswatch.observability.metrics import connection_lost_total, connections_total, frames_received_total
from opswatch.stream.errors import ConnectionFailedError, ConnectionLost, NotConnectedError

_log = get_logger("stream.transport")

Frame = str | bytes
Connector = Callable[[str], Awaitable[Any]]

_END = object()


class Transport:
    """Websocket client for the watcher event channel.

    Args:
        url:             Event channel URL (``ws://`` or ``wss://``).
        connect_timeout: Seconds allowed for the opening handshake.
        connector:       Coroutine function returning an open connection for
                         a URL.  Defaults to ``websockets`` client connect.
    """

    def __init__(self, url: str, connect_timeout: float = 10.0, connector: Connector | None = None) -> None:
        self._url = url
        self._connect_timeout = connect_timeout
        self._connector = connector or self._open
        self._ws: Any = None
        self._reader: asyncio.Task[None] | None = None
        self._subscribers: list[asyncio.Queue[object]] = []
        self._connect_lock = asyncio.Lock()
        self._closing = False
        self.connection_lost: ConnectionLost | None = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    async def _open(self, url: str) -> Any:
        return await ws_connect(url, open_timeout=self._connect_timeout)

    async def connect(self) -> Any:
        """Return the live connection, opening one if there is none.

        Raises:
            ConnectionFailedError: the channel could not be opened.
        """
        if self._ws is not None:
            return self._ws
        async with self._connect_lock:
            if self._ws is not None:
                return self._ws
            try:
                ws = await self._connector(self._url)
            except (OSError, WebSocketException) as exc:
                connections_total.labels(outcome="failure").inc()
                raise ConnectionFailedError(self._url, exc) from exc

            connections_total.labels(outcome="success").inc()
            self._ws = ws
            self._closing = False
            self.connection_lost = None
            self._reader = asyncio.create_task(self._pump(ws), name="event-channel-reader")
            _log.info("event_channel_connected", url=self._url)
            return ws

    async def frames(self) -> AsyncIterator[Frame]:
        """Yield raw inbound frames until the channel closes or drops."""
        await self.connect()
        queue: asyncio.Queue[object] = asyncio.Queue()
        self._subscribers.append(queue)
        try:
            while True:
                item = await queue.get()
                if item is _END:
                    return
                yield item  # type: ignore[misc]
        finally:
            if queue in self._subscribers:
                self._subscribers.remove(queue)

    async def send(self, message: dict[str, Any]) -> None:
        """Send one JSON control message.

        Raises:
            NotConnectedError: no live channel (call ``connect()`` first).
        """
        ws = self._ws
        if ws is None:
            raise NotConnectedError()
        try:
            await ws.send(json.dumps(message))
        except ConnectionClosed as exc:
            raise NotConnectedError(f"event channel closed while sending: {exc}") from exc

    async def close(self) -> None:
        """Close the channel.  Subscriptions complete; ``send`` fails until reconnected."""
        ws = self._ws
        if ws is None:
            return
        self._closing = True
        self._ws = None
        reader = self._reader
        try:
            await ws.close()
        finally:
            if reader is not None:
                if not reader.done():
                    reader.cancel()
                await asyncio.gather(reader, return_exceptions=True)
            self._reader = None
        _log.info("event_channel_closed", url=self._url)

    async def _pump(self, ws: Any) -> None:
        """Fan inbound frames out to every subscriber queue."""
        lost: ConnectionLost | None = None
        try:
            async for message in ws:
                frames_received_total.inc()
                for queue in self._subscribers:
                    queue.put_nowait(message)
            if not self._closing:
                lost = ConnectionLost(
                    self._url,
                    getattr(ws, "close_code", None),
                    getattr(ws, "close_reason", None) or "",
                )
        except ConnectionClosed as exc:
            if not self._closing:
                rcvd = exc.rcvd
                lost = ConnectionLost(
                    self._url,
                    rcvd.code if rcvd is not None else None,
                    rcvd.reason if rcvd is not None else "",
                )
        except OSError as exc:
            if not self._closing:
                lost = ConnectionLost(self._url, None, str(exc))
        finally:
            if self._ws is ws:
                self._ws = None
            self.connection_lost = lost
            if lost is not None:
                connection_lost_total.inc()
                _log.warning("connection_lost", url=self._url, code=lost.code, reason=lost.reason)
            for queue in self._subscribers:
                queue.put_nowait(_END)
            self._subscribers.clear()
