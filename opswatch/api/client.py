"""Async client for the dashboard's REST endpoints.

``GET /resources?scope=...`` returns the catalog of watchable resource kinds
and ``GET /stats`` a one-shot stats snapshot, used as the initial value
before the event stream publishes.
"""

from __future__ import annotations

from typing import Any

import httpx

from opswatch.models.resources import ResourceKind, ResourceScope
from opswatch.models.watchers import Stats
from opswatch.observability.logging import get_logger
from opswatch.stream.errors import DashboardAPIError

_log = get_logger("api.client")


class DashboardAPIClient:
    """Reads the resource catalog and stats from the dashboard backend.

    Args:
        base_url:  Backend base URL, e.g. ``http://127.0.0.1:1234``.
        timeout:   Request timeout in seconds.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url must not be empty")
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> DashboardAPIClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def list_resources(self, scope: ResourceScope = ResourceScope.CLUSTER) -> list[ResourceKind]:
        """Return the watchable resource kinds for *scope*."""
        payload = await self._get_json("/resources", params={"scope": scope.value})
        if not isinstance(payload, list):
            raise DashboardAPIError("/resources", "expected a JSON array")
        resources: list[ResourceKind] = []
        for item in payload:
            try:
                resources.append(_parse_resource(item))
            except (TypeError, ValueError, KeyError) as exc:
                raise DashboardAPIError("/resources", f"malformed resource entry: {exc}") from exc
        _log.debug("resources_listed", scope=scope.value or "cluster", count=len(resources))
        return resources

    async def get_stats(self) -> Stats:
        """Return the backend's current total / running / stopped counts."""
        payload = await self._get_json("/stats")
        if not isinstance(payload, dict):
            raise DashboardAPIError("/stats", "expected a JSON object")
        try:
            total = _non_negative(payload, "total")
            running = _non_negative(payload, "running")
        except (TypeError, ValueError, KeyError) as exc:
            raise DashboardAPIError("/stats", f"malformed stats: {exc}") from exc
        if running > total:
            raise DashboardAPIError("/stats", f"running ({running}) exceeds total ({total})")
        return Stats(total=total, running=running, stopped=total - running)

    async def _get_json(self, path: str, params: dict[str, str] | None = None) -> Any:
        try:
            response = await self._client.get(path, params=params)
        except httpx.TimeoutException as exc:
            raise DashboardAPIError(path, "request timed out") from exc
        except httpx.HTTPError as exc:
            raise DashboardAPIError(path, str(exc)) from exc
        if not response.is_success:
            raise DashboardAPIError(path, f"HTTP {response.status_code}: {response.text[:200]}")
        try:
            return response.json()
        except ValueError as exc:
            raise DashboardAPIError(path, "response body is not JSON") from exc


def _parse_resource(item: Any) -> ResourceKind:
    if not isinstance(item, dict):
        raise TypeError("entry is not an object")
    return ResourceKind(
        group=str(item.get("group", "")),
        kind=str(item["kind"]),
        version=str(item["version"]),
        namespaced=bool(item.get("namespaced", False)),
        list=bool(item.get("list", False)),
        watch=bool(item.get("watch", False)),
    )


def _non_negative(payload: dict[str, Any], name: str) -> int:
    value = payload[name]
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an integer")
    if value < 0:
        raise ValueError(f"{name} must be non-negative")
    return value
