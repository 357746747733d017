"""Application bootstrap for opswatch.

Wires the components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → metrics exporter → REST seed (stats and
              resource catalog) → watch stream engine → stats reporter

Shutdown stops components in reverse order.  Each step's error is caught and
logged on its own so one failing component does not block the rest.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from opswatch.api.client import DashboardAPIClient
from opswatch.config import load_config
from opswatch.models.config import OpsWatchConfig
from opswatch.models.resources import ResourceScope
from opswatch.models.watchers import Stats
from opswatch.observability.logging import get_logger, setup_logging
from opswatch.observability.metrics import start_metrics_server
from opswatch.stream.engine import WatchStreamEngine
from opswatch.stream.errors import DashboardAPIError

if TYPE_CHECKING:
    import structlog

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class OpsWatchApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    ``stop()`` is safe on an app that was never started or already stopped.
    """

    def __init__(self, config: OpsWatchConfig | None = None) -> None:
        self.config = config
        self.engine: WatchStreamEngine | None = None
        self._api: DashboardAPIClient | None = None
        self._stream_task: asyncio.Task[None] | None = None
        self._background_tasks: list[asyncio.Task[None]] = []
        self._running = False
        self._stopped = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def running(self) -> bool:
        """True until shutdown is requested or the event stream ends."""
        return self._running and self._stream_task is not None and not self._stream_task.done()

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        if self.config is None:
            self.config = load_config()

        setup_logging(self.config.log.level, fmt=self.config.log.format)
        self._log = get_logger("app")
        self._log.info("opswatch starting", version=_opswatch_version())

        self._start_metrics()
        initial_stats = await self._seed_from_api()
        await self._start_engine(initial_stats)
        self._start_stats_reporter()

        self._running = True
        self._log.info("opswatch started", events_url=self.config.stream.events_url)

    def _start_metrics(self) -> None:
        """Expose prometheus metrics when a port is configured (optional)."""
        assert self._log is not None
        assert self.config is not None
        port = self.config.metrics.port
        if not port:
            self._log.debug("metrics exporter disabled")
            return
        try:
            start_metrics_server(port)
            self._log.info("metrics exporter started", port=port)
        except OSError as exc:
            self._log.warning("metrics exporter failed to start", port=port, error=str(exc))

    async def _seed_from_api(self) -> Stats | None:
        """Fetch the one-shot stats and the resource catalog (optional).

        The stats value is shown until the stream publishes its first table.
        """
        assert self._log is not None
        assert self.config is not None
        self._api = DashboardAPIClient(
            self.config.api.base_url,
            timeout=self.config.api.timeout_seconds,
        )
        try:
            stats = await self._api.get_stats()
            cluster = await self._api.list_resources(ResourceScope.CLUSTER)
            namespaced = await self._api.list_resources(ResourceScope.NAMESPACE)
        except DashboardAPIError as exc:
            self._log.warning("rest seed unavailable; starting from an empty table", error=str(exc))
            return None
        self._log.info(
            "rest seed loaded",
            cluster_resources=len(cluster),
            namespaced_resources=len(namespaced),
            watchable=sum(1 for r in (*cluster, *namespaced) if r.watch),
            **stats.to_dict(),
        )
        return stats

    async def _start_engine(self, initial_stats: Stats | None) -> None:
        """Build the watch stream engine and start consuming the event channel."""
        assert self._log is not None
        assert self.config is not None
        try:
            engine = WatchStreamEngine.from_config(self.config, initial_stats=initial_stats)
            self._stream_task = asyncio.create_task(engine.run(), name="watch-stream")
            self.engine = engine
        except Exception as exc:
            raise _ComponentError("engine", exc) from exc
        self._log.info("watch stream engine started", reconnect=self.config.reconnect.enabled)

    def _start_stats_reporter(self) -> None:
        """Log every coalesced stats change until the stream ends."""
        assert self._log is not None
        assert self.engine is not None
        log = self._log
        stats = self.engine.stats

        async def _reporter() -> None:
            async for current in stats.updates():
                log.info("stats", **current.to_dict())

        self._background_tasks.append(asyncio.create_task(_reporter(), name="stats-reporter"))

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Stop all components in reverse startup order."""
        if self._stopped or (not self._running and self._log is None):
            return
        self._stopped = True

        log = self._log or get_logger("app")
        log.info("opswatch shutting down")
        self._running = False

        if self.engine is not None:
            try:
                await asyncio.wait_for(self.engine.close(), timeout=_SHUTDOWN_GRACE_SECONDS)
            except TimeoutError:
                log.warning("component stop timed out", component="engine", timeout=_SHUTDOWN_GRACE_SECONDS)
            except Exception as exc:
                log.error("component stop raised an error", component="engine", error=str(exc))

        tasks = [t for t in (self._stream_task, *self._background_tasks) if t is not None]
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=_SHUTDOWN_GRACE_SECONDS)
            for task in pending:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        self._background_tasks.clear()
        self._stream_task = None

        if self._api is not None:
            try:
                await self._api.close()
            except Exception as exc:
                log.debug("api client close raised (non-fatal)", error=str(exc))
            self._api = None

        log.info("opswatch stopped")


def _opswatch_version() -> str:
    from opswatch import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = OpsWatchApp()
    loop = asyncio.get_running_loop()

    shutdown_task: asyncio.Task[None] | None = None

    def _request_shutdown() -> None:
        nonlocal shutdown_task
        if shutdown_task is None:
            shutdown_task = asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        while app.running:
            await asyncio.sleep(1)
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    except ValueError as exc:
        # Invalid OPSWATCH_* configuration
        get_logger("app").critical("invalid configuration", error=str(exc))
        raise SystemExit(2) from exc
    finally:
        if shutdown_task is not None:
            await shutdown_task
        else:
            await app.stop()


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())
