"""Concrete DashboardSource implementations."""

from __future__ import annotations

from riskview.core.api.client import RiskAPIClient
from riskview.core.api.models import HistoryPage, RecentPredictions, TimeFilter
from riskview.domains.clinical.sources.mock_data import (
    get_mock_patient_history,
    get_mock_recent_predictions,
)


class APIDashboardSource:
    """Reads the prediction feed from the live API."""

    def __init__(self, client: RiskAPIClient) -> None:
        self._client = client

    async def fetch_recent_predictions(self, limit: int = 5) -> RecentPredictions:
        return await self._client.fetch_recent_predictions(limit)

    @property
    def data_source(self) -> str:
        return "api"


class MockPredictionSource:
    """Serves the built-in sample predictions. Always available.

    Also answers history queries so the history view works without an API.
    """

    async def fetch_recent_predictions(self, limit: int = 5) -> RecentPredictions:
        feed = RecentPredictions.from_dict(get_mock_recent_predictions())
        return RecentPredictions(
            records=feed.records[:limit],
            total_patients=feed.total_patients,
            alert_system_active=feed.alert_system_active,
        )

    async def fetch_history(
        self,
        patient_id: str,
        page_index: int,
        page_size: int,
        time_filter: TimeFilter | str = TimeFilter.ALL,
    ) -> HistoryPage:
        payload = get_mock_patient_history(patient_id)
        start = (page_index - 1) * page_size
        payload["history"] = payload["history"][start:start + page_size]
        return HistoryPage.from_response(
            payload,
            page_index=page_index,
            page_size=page_size,
            time_filter=TimeFilter(time_filter),
        )

    @property
    def data_source(self) -> str:
        return "mock"
