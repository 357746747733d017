"""Error taxonomy for the watcher stream engine.

Exceptions (raised):
    NotConnectedError     -- send attempted without a live channel.
    ConnectionFailedError -- the event channel could not be opened.

Values (returned or recorded, never raised by the engine):
    DecodeError        -- malformed inbound frame; the frame is dropped.
    ConnectionLost     -- the channel dropped without a close() request.
    UnknownKeyWarning  -- delta for a key without a prior snapshot.
    StaleDeltaWarning  -- delta that would move event counters backwards.
"""

from __future__ import annotations

from opswatch.models.watchers import WatcherKey


class OpsWatchError(Exception):
    """Base class for opswatch errors."""


class NotConnectedError(OpsWatchError):
    """Raised when sending on a transport with no live channel."""

    def __init__(self, message: str = "event channel is not connected; call connect() first") -> None:
        super().__init__(message)


class ConnectionFailedError(OpsWatchError):
    """Raised by ``Transport.connect`` when the channel cannot be opened."""

    def __init__(self, url: str, cause: Exception) -> None:
        super().__init__(f"failed to connect to {url}: {cause}")
        self.url = url
        self.cause = cause


class ConnectionLost(OpsWatchError):
    """Terminal signal recorded when the channel drops unexpectedly."""

    def __init__(self, url: str, code: int | None = None, reason: str = "") -> None:
        detail = f" (code={code}, reason={reason!r})" if code is not None else ""
        super().__init__(f"connection to {url} lost{detail}")
        self.url = url
        self.code = code
        self.reason = reason


class DecodeError(OpsWatchError):
    """A raw frame that does not decode to a known watcher event."""

    def __init__(self, reason: str, raw: str | bytes = "") -> None:
        super().__init__(reason)
        self.reason = reason
        self.raw = raw

    @property
    def preview(self) -> str:
        """First 200 characters of the offending frame, for logs."""
        text = self.raw.decode("utf-8", errors="replace") if isinstance(self.raw, bytes) else self.raw
        return text[:200]


class DashboardAPIError(OpsWatchError):
    """The dashboard REST API could not be reached or returned bad data."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"GET {path} failed: {detail}")
        self.path = path
        self.detail = detail


class ApplyWarning(Warning):
    """Base class for events the watcher table drops."""

    reason = "dropped"
    log_event = "event_dropped"

    def __init__(self, key: WatcherKey, message: str) -> None:
        super().__init__(message)
        self.key = key


class UnknownKeyWarning(ApplyWarning):
    """A delta arrived for a key with no row in the table."""

    reason = "unknown_key"
    log_event = "unknown_key_delta_dropped"

    def __init__(self, key: WatcherKey) -> None:
        super().__init__(key, f"delta for unknown watcher {key}; waiting for a snapshot")


class StaleDeltaWarning(ApplyWarning):
    """A delta would have decreased a watcher's event counters."""

    reason = "stale_delta"
    log_event = "stale_delta_dropped"

    def __init__(self, key: WatcherKey, field_name: str, current: int, proposed: int) -> None:
        super().__init__(
            key,
            f"delta for watcher {key} would lower {field_name} from {current} to {proposed}",
        )
        self.field_name = field_name
        self.current = current
        self.proposed = proposed
