"""Tests for the event decoder.

Covers every frame variant, the backend's integer isRunning encoding, and the
malformed inputs that must come back as DecodeError values.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from opswatch.models.watchers import Delta, Removed, Snapshot, WatcherKey
from opswatch.stream.decoder import decode
from opswatch.stream.errors import DecodeError
from tests.factories import DEFAULT_POD, POD, delta_frame, removed_frame, snapshot_frame

# ---------------------------------------------------------------------------
# Valid frames
# ---------------------------------------------------------------------------


class TestSnapshotFrames:
    def test_full_snapshot(self) -> None:
        event = decode(snapshot_frame(handled=5, unhandled=2, queue=True, last_event="2026-02-18T12:00:00Z"))
        assert isinstance(event, Snapshot)
        assert event.key == POD
        assert event.state.running is True
        assert event.state.queue_non_empty is True
        assert event.state.handled_event_count == 5
        assert event.state.unhandled_event_count == 2
        assert event.state.total_event_count == 7
        assert event.state.last_event_timestamp == datetime(2026, 2, 18, 12, 0, 0, tzinfo=UTC)

    @pytest.mark.parametrize(("wire", "expected"), [(0, False), (1, True), (2, True), (False, False)])
    def test_integer_is_running(self, wire: int | bool, expected: bool) -> None:
        event = decode(snapshot_frame(running=wire))
        assert isinstance(event, Snapshot)
        assert event.state.running is expected

    def test_empty_last_event_is_none(self) -> None:
        event = decode(snapshot_frame(last_event=""))
        assert isinstance(event, Snapshot)
        assert event.state.last_event_timestamp is None

    @pytest.mark.parametrize("text", ["<nil>", "yesterday", "&{Type:ADDED Object:0xc000}"])
    def test_free_text_last_event_is_none(self, text: str) -> None:
        event = decode(snapshot_frame(handled=3, last_event=text))
        assert isinstance(event, Snapshot)
        assert event.state.handled_event_count == 3
        assert event.state.last_event_timestamp is None

    def test_consistent_events_total_accepted(self) -> None:
        event = decode(snapshot_frame(handled=4, unhandled=1, events=5))
        assert isinstance(event, Snapshot)

    def test_namespaced_key(self) -> None:
        event = decode(snapshot_frame(key=DEFAULT_POD))
        assert isinstance(event, Snapshot)
        assert event.key == WatcherKey("default", "v1.Pod")

    def test_missing_namespace_means_cluster_scope(self) -> None:
        raw = json.dumps(
            {
                "type": "snapshot",
                "key": {"resource": "v1.Pod"},
                "state": {"isRunning": True, "handledEventCount": 0, "unhandledEventCount": 0},
            }
        )
        event = decode(raw)
        assert isinstance(event, Snapshot)
        assert event.key == POD
        assert event.state.queue_non_empty is False

    def test_bytes_frame(self) -> None:
        event = decode(snapshot_frame().encode("utf-8"))
        assert isinstance(event, Snapshot)

    def test_unknown_top_level_keys_ignored(self) -> None:
        raw = json.loads(snapshot_frame())
        raw["sequence"] = 12
        assert isinstance(decode(json.dumps(raw)), Snapshot)


class TestDeltaFrames:
    def test_field_subset(self) -> None:
        event = decode(delta_frame(isRunning=False))
        assert isinstance(event, Delta)
        assert event.fields.changes() == {"running": False}

    def test_counter_update(self) -> None:
        event = decode(delta_frame(handledEventCount=9, unhandledEventCount=1, events=10))
        assert isinstance(event, Delta)
        assert event.fields.changes() == {"handled_event_count": 9, "unhandled_event_count": 1}

    def test_last_event_timestamp(self) -> None:
        event = decode(delta_frame(lastEvent="2026-02-18T12:30:00+00:00"))
        assert isinstance(event, Delta)
        assert event.fields.last_event_timestamp == datetime(2026, 2, 18, 12, 30, tzinfo=UTC)


class TestRemovedFrames:
    def test_removed(self) -> None:
        event = decode(removed_frame(DEFAULT_POD))
        assert event == Removed(key=DEFAULT_POD)


# ---------------------------------------------------------------------------
# Malformed frames
# ---------------------------------------------------------------------------

_BAD_FRAMES = {
    "not json": "{not json",
    "json array": "[]",
    "json scalar": "42",
    "missing type": json.dumps({"key": {"resource": "v1.Pod"}}),
    "unknown type": json.dumps({"type": "restart", "key": {"resource": "v1.Pod"}}),
    "missing key": json.dumps({"type": "removed"}),
    "empty resource": json.dumps({"type": "removed", "key": {"namespace": "", "resource": ""}}),
    "non-string namespace": json.dumps({"type": "removed", "key": {"namespace": 3, "resource": "v1.Pod"}}),
    "snapshot without state": json.dumps({"type": "snapshot", "key": {"resource": "v1.Pod"}}),
    "negative counter": snapshot_frame(handled=-1),
    "string counter": snapshot_frame(handled="5"),  # type: ignore[arg-type]
    "float counter": snapshot_frame(handled=1.5),  # type: ignore[arg-type]
    "negative isRunning": snapshot_frame(running=-1),
    "string isRunning": snapshot_frame(running="yes"),  # type: ignore[arg-type]
    "inconsistent total": snapshot_frame(handled=4, unhandled=1, events=7),
    "numeric timestamp": snapshot_frame(last_event=1700000000),  # type: ignore[arg-type]
    "delta without fields": json.dumps({"type": "delta", "key": {"resource": "v1.Pod"}}),
    "empty delta": delta_frame(),
    "delta clearing only lastEvent": delta_frame(lastEvent=""),
    "unknown delta field": delta_frame(isRuning=True),
    "delta total without counters": delta_frame(events=3),
    "delta inconsistent total": delta_frame(handledEventCount=1, unhandledEventCount=1, events=3),
}


class TestDecodeErrors:
    @pytest.mark.parametrize("raw", list(_BAD_FRAMES.values()), ids=list(_BAD_FRAMES.keys()))
    def test_malformed_frame_returns_decode_error(self, raw: str) -> None:
        result = decode(raw)
        assert isinstance(result, DecodeError)
        assert result.reason
        assert result.raw == raw

    def test_invalid_utf8(self) -> None:
        result = decode(b"\xff\xfe\x00")
        assert isinstance(result, DecodeError)
        assert "UTF-8" in result.reason

    def test_preview_is_truncated(self) -> None:
        result = decode("x" * 1000)
        assert isinstance(result, DecodeError)
        assert len(result.preview) == 200

    def test_error_mentions_field(self) -> None:
        result = decode(snapshot_frame(handled=-1))
        assert isinstance(result, DecodeError)
        assert "handledEventCount" in result.reason

    @settings(max_examples=200)
    @given(raw=st.one_of(st.text(), st.binary()))
    def test_arbitrary_input_never_raises(self, raw: str | bytes) -> None:
        result = decode(raw)
        assert isinstance(result, Snapshot | Delta | Removed | DecodeError)
