"""Outbound control message structures."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from opswatch.models.watchers import WatcherKey


class CommandAction(StrEnum):
    """Actions a dashboard operator can request for a watcher."""

    START = "start"
    STOP = "stop"

    @property
    def expects_running(self) -> bool:
        return self is CommandAction.START


@dataclass(frozen=True)
class ControlMessage:
    """``{action, key}`` message sent over the event channel."""

    action: CommandAction
    key: WatcherKey

    def to_dict(self) -> dict[str, object]:
        return {"action": self.action.value, "key": self.key.to_dict()}
