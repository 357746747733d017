"""Watchable resource catalog entries returned by the dashboard REST API."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class ResourceScope(StrEnum):
    """Value of the ``scope`` query parameter on ``GET /resources``."""

    CLUSTER = ""
    NAMESPACE = "namespace"


@dataclass(frozen=True)
class ResourceKind:
    """A resource kind the backend can list and/or watch."""

    group: str
    kind: str
    version: str
    namespaced: bool = False
    list: bool = False
    watch: bool = False

    @property
    def key(self) -> str:
        """Resource key in ``[group.]version.Kind`` form, e.g. ``apps.v1.Deployment``."""
        if self.group:
            return f"{self.group}.{self.version}.{self.kind}"
        return f"{self.version}.{self.kind}"
