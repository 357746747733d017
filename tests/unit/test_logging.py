"""Tests for structlog setup."""

from __future__ import annotations

import io
import json
from collections.abc import Iterator

import pytest
import structlog

from opswatch.observability.logging import get_logger, setup_logging


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()


class TestSetupLogging:
    def test_json_lines(self) -> None:
        out = io.StringIO()
        setup_logging("info", "json", stream=out)
        get_logger("stream.table").info("watcher_reset", resource="v1.Pod")

        record = json.loads(out.getvalue().strip())
        assert record["event"] == "watcher_reset"
        assert record["component"] == "stream.table"
        assert record["level"] == "info"
        assert record["resource"] == "v1.Pod"
        assert "ts" in record

    def test_level_filters_debug(self) -> None:
        out = io.StringIO()
        setup_logging("warning", "json", stream=out)
        log = get_logger("app")
        log.info("ignored")
        log.warning("kept")
        lines = out.getvalue().strip().splitlines()
        assert [json.loads(line)["event"] for line in lines] == ["kept"]

    def test_console_renderer(self) -> None:
        out = io.StringIO()
        setup_logging("info", "console", stream=out)
        get_logger("app").info("opswatch started")
        text = out.getvalue()
        assert "opswatch started" in text
        with pytest.raises(json.JSONDecodeError):
            json.loads(text)

    def test_auto_uses_json_when_not_a_tty(self) -> None:
        out = io.StringIO()
        setup_logging("info", "auto", stream=out)
        get_logger("app").info("hello")
        assert json.loads(out.getvalue())["event"] == "hello"

    def test_invalid_format(self) -> None:
        with pytest.raises(ValueError):
            setup_logging("info", "xml")
