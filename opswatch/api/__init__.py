"""Client for the dashboard backend's REST endpoints.

Exposes:
    DashboardAPIClient -- resource catalog and one-shot stats.
"""

from opswatch.api.client import DashboardAPIClient

__all__ = ["DashboardAPIClient"]
