"""Tests for OpsWatchApp startup and shutdown wiring."""

from __future__ import annotations

import asyncio
import signal

from unittest.mock import MagicMock

import httpx
import pytest

from opswatch import app as app_module
from opswatch.api.client import DashboardAPIClient
from opswatch.app import OpsWatchApp
from opswatch.models.config import OpsWatchConfig
from opswatch.models.watchers import Stats
from opswatch.stream.engine import WatchStreamEngine
from opswatch.stream.transport import Transport
from tests.conftest import EVENTS_URL
from tests.factories import POD, FakeConnector, settle, snapshot_frame


def _dashboard(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/stats":
        return httpx.Response(200, json={"total": 3, "running": 2, "stopped": 1})
    return httpx.Response(200, json=[{"kind": "Pod", "version": "v1", "namespaced": True, "watch": True}])


@pytest.fixture
def fake_connector(monkeypatch: pytest.MonkeyPatch) -> FakeConnector:
    connector = FakeConnector()

    def _from_config(config: OpsWatchConfig, initial_stats: Stats | None = None) -> WatchStreamEngine:
        return WatchStreamEngine(Transport(EVENTS_URL, connector=connector), initial_stats=initial_stats)

    monkeypatch.setattr(app_module.WatchStreamEngine, "from_config", staticmethod(_from_config))
    return connector


def _patch_api(monkeypatch: pytest.MonkeyPatch, handler) -> None:  # type: ignore[no-untyped-def]
    def _client(base_url: str, timeout: float = 10.0) -> DashboardAPIClient:
        return DashboardAPIClient(base_url, timeout=timeout, transport=httpx.MockTransport(handler))

    monkeypatch.setattr(app_module, "DashboardAPIClient", _client)


class TestOpsWatchApp:
    async def test_start_seeds_stats_and_stop(
        self, monkeypatch: pytest.MonkeyPatch, fake_connector: FakeConnector
    ) -> None:
        _patch_api(monkeypatch, _dashboard)
        app = OpsWatchApp(OpsWatchConfig())
        await app.start()
        await settle()

        assert app.running
        assert app.engine is not None
        assert app.engine.stats.current == Stats(total=3, running=2, stopped=1)

        fake_connector.latest.push(snapshot_frame(POD, running=False))
        await settle()
        assert app.engine.stats.current == Stats(total=1, running=0, stopped=1)

        await asyncio.wait_for(app.stop(), timeout=2.0)
        assert not app.running
        assert app.engine.table.completed

    async def test_rest_failure_is_not_fatal(
        self, monkeypatch: pytest.MonkeyPatch, fake_connector: FakeConnector
    ) -> None:
        _patch_api(monkeypatch, lambda _r: httpx.Response(500, text="boom"))
        app = OpsWatchApp(OpsWatchConfig())
        await app.start()
        assert app.engine is not None
        assert app.engine.stats.current == Stats()
        await app.stop()

    async def test_running_false_once_stream_ends(
        self, monkeypatch: pytest.MonkeyPatch, fake_connector: FakeConnector
    ) -> None:
        _patch_api(monkeypatch, _dashboard)
        app = OpsWatchApp(OpsWatchConfig())
        await app.start()
        await settle()
        fake_connector.latest.drop()
        await settle()
        assert not app.running
        await app.stop()

    async def test_stop_without_start_is_noop(self) -> None:
        await OpsWatchApp(OpsWatchConfig()).stop()

    async def test_stop_is_idempotent(
        self, monkeypatch: pytest.MonkeyPatch, fake_connector: FakeConnector
    ) -> None:
        _patch_api(monkeypatch, _dashboard)
        app = OpsWatchApp(OpsWatchConfig())
        await app.start()
        await app.stop()
        await app.stop()

    async def test_metrics_exporter_started_when_port_set(
        self, monkeypatch: pytest.MonkeyPatch, fake_connector: FakeConnector
    ) -> None:
        _patch_api(monkeypatch, _dashboard)
        exporter = MagicMock()
        monkeypatch.setattr(app_module, "start_metrics_server", exporter)
        config = OpsWatchConfig()
        config.metrics.port = 9464
        app = OpsWatchApp(config)
        await app.start()
        await app.stop()
        exporter.assert_called_once_with(9464)

    async def test_metrics_exporter_failure_is_not_fatal(
        self, monkeypatch: pytest.MonkeyPatch, fake_connector: FakeConnector
    ) -> None:
        _patch_api(monkeypatch, _dashboard)
        monkeypatch.setattr(app_module, "start_metrics_server", MagicMock(side_effect=OSError("address in use")))
        config = OpsWatchConfig()
        config.metrics.port = 9464
        app = OpsWatchApp(config)
        await app.start()
        assert app.running
        await app.stop()


# ---------------------------------------------------------------------------
# main()
# ---------------------------------------------------------------------------


class _SlowStopApp:
    """Stand-in app whose stop() blocks until released."""

    instances: list[_SlowStopApp] = []

    def __init__(self, config: OpsWatchConfig | None = None) -> None:
        self._running = False
        self.release = asyncio.Event()
        self.stop_calls = 0
        self.stop_finished = False
        _SlowStopApp.instances.append(self)

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        self._running = True

    async def stop(self) -> None:
        self.stop_calls += 1
        self._running = False
        await self.release.wait()
        self.stop_finished = True


class TestMain:
    async def test_signal_shutdown_is_awaited(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _SlowStopApp.instances.clear()
        monkeypatch.setattr(app_module, "OpsWatchApp", _SlowStopApp)
        handlers: dict[int, object] = {}
        loop = asyncio.get_running_loop()
        monkeypatch.setattr(loop, "add_signal_handler", lambda sig, cb: handlers.__setitem__(sig, cb))

        main_task = asyncio.create_task(app_module.main())
        await settle()
        fake = _SlowStopApp.instances[0]
        handlers[signal.SIGTERM]()  # type: ignore[operator]
        handlers[signal.SIGINT]()  # type: ignore[operator]

        await asyncio.sleep(1.2)
        assert not main_task.done()

        fake.release.set()
        await asyncio.wait_for(main_task, timeout=1.0)
        assert fake.stop_finished
        assert fake.stop_calls == 1
