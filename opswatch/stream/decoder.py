"""Event decoder: raw event-channel frames to typed watcher events.

Decoding is pure and stateless.  Every frame names its own variant and key,
so no state from earlier frames is needed.  Malformed input never raises:
``decode`` returns a ``DecodeError`` value the caller can log and skip.
"""

from __future__ import annotations

from pydantic import ValidationError

from opswatch.models.watchers import (
    Delta,
    Removed,
    Snapshot,
    WatcherDelta,
    WatcherEvent,
    WatcherKey,
    WatcherState,
)
from opswatch.stream.errors import DecodeError
from opswatch.stream.schemas import FRAME_ADAPTER, DeltaFrame, SnapshotFrame, WireKey


def decode(raw: str | bytes) -> WatcherEvent | DecodeError:
    """Decode one raw frame into a ``Snapshot``, ``Delta`` or ``Removed`` event."""
    if isinstance(raw, bytes):
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            return DecodeError("frame is not valid UTF-8", raw)
    elif isinstance(raw, str):
        text = raw
    else:
        return DecodeError(f"unsupported frame type {type(raw).__name__}")

    try:
        frame = FRAME_ADAPTER.validate_json(text)
    except ValidationError as exc:
        return DecodeError(_summarize(exc), raw)

    key = _key(frame.key)
    if isinstance(frame, SnapshotFrame):
        state = frame.state
        return Snapshot(
            key=key,
            state=WatcherState(
                key=key,
                running=state.running,
                queue_non_empty=state.queue,
                handled_event_count=state.handled_event_count,
                unhandled_event_count=state.unhandled_event_count,
                last_event_timestamp=state.last_event,
            ),
        )
    if isinstance(frame, DeltaFrame):
        changes = frame.changes
        delta = WatcherDelta(
            running=changes.running,
            queue_non_empty=changes.queue,
            handled_event_count=changes.handled_event_count,
            unhandled_event_count=changes.unhandled_event_count,
            last_event_timestamp=changes.last_event,
        )
        if delta.is_empty():
            return DecodeError("delta must update at least one field", raw)
        return Delta(key=key, fields=delta)
    return Removed(key=key)


def _key(wire: WireKey) -> WatcherKey:
    return WatcherKey(namespace=wire.namespace, resource=wire.resource)


def _summarize(exc: ValidationError) -> str:
    """Collapse a pydantic ValidationError into one log-friendly line."""
    errors = exc.errors()
    if not errors:
        return "invalid frame"
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()))
    msg = str(first.get("msg", "invalid value"))
    extra = f" (+{len(errors) - 1} more)" if len(errors) > 1 else ""
    return f"{loc}: {msg}{extra}" if loc else f"{msg}{extra}"
