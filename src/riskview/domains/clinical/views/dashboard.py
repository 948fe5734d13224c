"""Dashboard aggregate: headline stats and recent predictions with system status.

The aggregator fetches the recent-prediction feed through a
``QueryController`` and derives every displayed value from the committed
feed. Refresh is caller-triggered and single-flight: while one refresh is
running, further calls return the current snapshot without fetching.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Any

from riskview.core.api.models import RecentPredictions
from riskview.core.query.controller import (
    QueryController,
    QueryKey,
    QueryState,
    QueryStatus,
)
from riskview.domains.clinical.domain_logic.dashboard_stats import (
    DailyRisk,
    DashboardStats,
    RecentPrediction,
    compute_stats,
    daily_risk_trend,
    recent_predictions,
)
from riskview.domains.clinical.sources import DashboardSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SystemStatus:
    model_status: str  # 'Online' | 'Degraded' | 'Offline'
    alert_system: str  # 'Active' | 'Inactive'
    data_source: str = ""


@dataclass(frozen=True)
class Aggregate:
    """One refreshable dashboard snapshot."""

    stats: DashboardStats
    recent_predictions: list[RecentPrediction]
    system_status: SystemStatus
    daily_risk_trend: list[DailyRisk] = field(default_factory=list)
    error: str | None = None
    refreshing: bool = False
    refreshed_at: datetime | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "stats": self.stats.as_dict(),
            "recent_predictions": [p.as_dict() for p in self.recent_predictions],
            "system_status": {
                "model_status": self.system_status.model_status,
                "alert_system": self.system_status.alert_system,
                "data_source": self.system_status.data_source,
            },
            "daily_risk_trend": [
                {"date": d.date, "average_risk": d.average_risk, "count": d.count}
                for d in self.daily_risk_trend
            ],
            "error": self.error,
            "refreshing": self.refreshing,
            "refreshed_at": self.refreshed_at.isoformat() if self.refreshed_at else None,
        }


class DashboardAggregator:
    """Composes the dashboard snapshot from the recent-prediction feed.

    Usage::

        aggregator = DashboardAggregator(MockPredictionSource())
        aggregate = await aggregator.refresh()
        print(aggregate.stats.high_risk_count)
    """

    def __init__(
        self,
        source: DashboardSource,
        *,
        recent_limit: int = 5,
        timeout: float | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        self._source = source
        self._recent_limit = recent_limit
        self._tz = tz
        self._refreshing = False
        self._refreshed_at: datetime | None = None
        self._controller: QueryController[RecentPredictions] = QueryController(
            self._fetch,
            timeout=timeout,
            error_prefix="Failed to refresh dashboard",
            name="dashboard",
        )

    @property
    def refreshing(self) -> bool:
        return self._refreshing

    @property
    def controller(self) -> QueryController[RecentPredictions]:
        return self._controller

    async def refresh(self) -> Aggregate:
        """Fetch the feed and return the derived snapshot.

        A call made while a refresh is running does not fetch; it returns
        the current snapshot with ``refreshing=True``.
        """
        if self._refreshing:
            logger.debug("Dashboard refresh already in flight; skipping")
            return self.snapshot()

        self._refreshing = True
        try:
            if self._controller.state.key is None:
                self._controller.request(QueryKey.aggregate())
            else:
                self._controller.refetch()
            state = await self._controller.settled()
            if state.status is QueryStatus.SUCCESS:
                self._refreshed_at = datetime.now(timezone.utc)
        finally:
            self._refreshing = False
        return self.snapshot()

    def snapshot(self) -> Aggregate:
        """Derive the aggregate from the committed feed without fetching."""
        state = self._controller.state
        feed = state.data
        records = list(feed.records) if feed is not None else []

        return Aggregate(
            stats=compute_stats(
                records,
                total_patients=feed.total_patients if feed is not None else None,
            ),
            recent_predictions=recent_predictions(records, limit=self._recent_limit),
            system_status=self._system_status(state),
            daily_risk_trend=daily_risk_trend(records, tz=self._tz),
            error=state.error,
            refreshing=self._refreshing,
            refreshed_at=self._refreshed_at,
        )

    async def _fetch(self, key: QueryKey) -> RecentPredictions:
        return await self._source.fetch_recent_predictions(self._recent_limit)

    def _system_status(self, state: QueryState[RecentPredictions]) -> SystemStatus:
        if not state.has_data:
            model_status = "Offline"
        elif state.status is QueryStatus.ERROR:
            model_status = "Degraded"
        else:
            model_status = "Online"
        alert_active = state.data.alert_system_active if state.has_data else False
        return SystemStatus(
            model_status=model_status,
            alert_system="Active" if alert_active else "Inactive",
            data_source=self._source.data_source,
        )
