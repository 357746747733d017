"""Command sender: start/stop intents to control messages.

Commands are fire-and-forget.  Their effect shows up later as a delta or
snapshot for the same key, correlated by key only.  Optionally the sender
can wait a bounded time for a table update to the commanded row that
reports the requested running state.  Publishes that leave that row as it
was when the command went out do not count, so a watcher already in the
requested state is only acknowledged by a later update to its own row.  A
watcher that ignores the command is not an error.
"""

from __future__ import annotations

import asyncio

from opswatch.models.commands import CommandAction, ControlMessage
from opswatch.models.watchers import WatcherKey, WatcherState
from opswatch.observability.logging import get_logger
from opswatch.observability.metrics import commands_total
from opswatch.stream.errors import NotConnectedError
from opswatch.stream.table import TableSnapshot, WatcherTable
from opswatch.stream.transport import Transport

_log = get_logger("stream.commands")


class CommandSender:
    """Sends watcher control messages through the shared transport.

    Args:
        transport:   Transport owning the event channel.
        table:       Table to watch for command effects.  Required for
                     acknowledgment waits.
        ack_timeout: Default seconds to wait for the effect.  None or 0 means
                     return as soon as the message is sent.
    """

    def __init__(
        self,
        transport: Transport,
        table: WatcherTable | None = None,
        ack_timeout: float | None = None,
    ) -> None:
        self._transport = transport
        self._table = table
        self._ack_timeout = ack_timeout

    async def start(self, key: WatcherKey, timeout: float | None = None) -> bool | None:
        """Ask the backend to start the watcher for *key*."""
        return await self._send(CommandAction.START, key, timeout)

    async def stop(self, key: WatcherKey, timeout: float | None = None) -> bool | None:
        """Ask the backend to stop the watcher for *key*."""
        return await self._send(CommandAction.STOP, key, timeout)

    async def _send(self, action: CommandAction, key: WatcherKey, timeout: float | None) -> bool | None:
        """Send the command; return None (no wait), True (effect seen) or False (timed out).

        Raises:
            NotConnectedError: the transport has no live channel.
        """
        wait_for = timeout if timeout is not None else self._ack_timeout
        if not wait_for or self._table is None:
            wait_for = None

        effect: asyncio.Future[None] | None = None
        unsubscribe = None
        if wait_for is not None:
            assert self._table is not None
            effect = asyncio.get_running_loop().create_future()
            baseline = self._table.get(key)
            unsubscribe = self._table.subscribe(_effect_listener(key, action.expects_running, baseline, effect))

        try:
            try:
                await self._transport.send(ControlMessage(action=action, key=key).to_dict())
            except NotConnectedError:
                commands_total.labels(action=action.value, outcome="not_connected").inc()
                _log.warning("command_not_sent", action=action.value, namespace=key.namespace, resource=key.resource)
                raise

            commands_total.labels(action=action.value, outcome="sent").inc()
            _log.info("command_sent", action=action.value, namespace=key.namespace, resource=key.resource)
            if effect is None:
                return None

            try:
                await asyncio.wait_for(effect, timeout=wait_for)
            except TimeoutError:
                commands_total.labels(action=action.value, outcome="unacknowledged").inc()
                _log.info(
                    "command_effect_not_observed",
                    action=action.value,
                    namespace=key.namespace,
                    resource=key.resource,
                    timeout=wait_for,
                )
                return False
            commands_total.labels(action=action.value, outcome="acknowledged").inc()
            return True
        finally:
            if unsubscribe is not None:
                unsubscribe()


def _effect_listener(  # type: ignore[no-untyped-def]
    key: WatcherKey,
    running: bool,
    baseline: WatcherState | None,
    effect: asyncio.Future[None],
):
    # Only a publish that replaced the row for key counts; rows are replaced
    # wholesale on every applied snapshot or delta for that key.
    def _listener(view: TableSnapshot) -> None:
        if effect.done():
            return
        for row in view:
            if row.key != key:
                continue
            if row is not baseline and row.running == running:
                effect.set_result(None)
            return

    return _listener
