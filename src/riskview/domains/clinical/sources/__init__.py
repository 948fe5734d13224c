"""Dashboard data sources — abstraction over where recent predictions come from."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from riskview.core.api.models import RecentPredictions


@runtime_checkable
class DashboardSource(Protocol):
    """Abstract interface for the dashboard's cross-patient prediction feed.

    The aggregator calls this without knowing whether predictions come
    from the live API or the built-in sample data.
    """

    async def fetch_recent_predictions(self, limit: int = 5) -> RecentPredictions:
        """Latest predictions across all patients, newest first."""
        ...

    @property
    def data_source(self) -> str:
        """Label for the active data source: 'api' or 'mock'."""
        ...
