"""Shared fixtures for opswatch tests."""

from __future__ import annotations

import pytest

from opswatch.stream.table import WatcherTable
from opswatch.stream.transport import Transport
from tests.factories import FakeConnector

EVENTS_URL = "ws://dashboard.test/ws"


@pytest.fixture
def table() -> WatcherTable:
    return WatcherTable()


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def transport(connector: FakeConnector) -> Transport:
    return Transport(EVENTS_URL, connector=connector)
