"""MCP tools for the clinical risk dashboard.

Exposes the three screens of the dashboard (summary, patient history,
prediction form) as tools. History views are kept per patient for the
lifetime of the server, up to a cap on the number of patients, so each
patient's view keeps its own query state and last good page between calls.
Calls for the same patient are serialised on that view's lock.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from riskview.core.api.models import TimeFilter
from riskview.domains.clinical.views.history import (
    DEFAULT_MAX_VIEWS,
    HistoryFetcher,
    HistoryViewCache,
)
from riskview.domains.clinical.views.prediction import PredictionForm, PredictionSubmitter

if TYPE_CHECKING:
    from riskview.domains.clinical.views.dashboard import DashboardAggregator

logger = logging.getLogger(__name__)


def register_dashboard_tools(
    mcp: FastMCP,
    aggregator: DashboardAggregator,
    history_fetcher: HistoryFetcher,
    submitter: PredictionSubmitter | None,
    *,
    page_size: int = 5,
    timeout: float | None = None,
    max_history_views: int = DEFAULT_MAX_VIEWS,
) -> None:
    """Register dashboard, history, and prediction tools on the MCP server."""
    history_views = HistoryViewCache(
        history_fetcher,
        page_size=page_size,
        timeout=timeout,
        max_views=max_history_views,
    )

    @mcp.tool
    async def risk_dashboard(ctx: Context) -> str:
        """Refresh and return the risk dashboard.

        Returns headline stats, the most recent predictions with their risk
        levels, a daily average risk trend, and system status.
        """
        aggregate = await aggregator.refresh()
        return json.dumps(aggregate.as_dict())

    @mcp.tool
    async def patient_history(
        ctx: Context,
        patient_id: str,
        page: int = 1,
        time_filter: str = "all",
    ) -> str:
        """Return one page of a patient's prediction history with a trend chart.

        Args:
            patient_id: Patient identifier (e.g. 'P1001').
            page: 1-based page number. Pages beyond the last page are ignored.
            time_filter: 'all', 'week', or 'month'.
        """
        try:
            selected_filter = TimeFilter(time_filter)
        except ValueError:
            return json.dumps({
                "status": "error",
                "error": f"Unknown time_filter {time_filter!r}; use all, week, or month",
            })

        view, lock = history_views.get(patient_id)
        async with lock:
            if view.state.key is None or view.time_filter is not selected_filter:
                view.change_time_filter(selected_filter)
                await view.settled()
                if page != 1:
                    view.change_page(page)
            else:
                # Same page after an error re-issues the request
                view.change_page(page)
            await view.settled()
            return json.dumps(view.snapshot().as_dict())

    @mcp.tool
    async def predict_risk(
        ctx: Context,
        patient_id: str,
        heart_rate: float,
        oxygen_sat: float,
        blood_pressure: float,
        respiration_rate: float,
    ) -> str:
        """Request a cardiac risk prediction for one set of vitals.

        Args:
            patient_id: Patient identifier.
            heart_rate: Heart rate in bpm.
            oxygen_sat: Oxygen saturation in %.
            blood_pressure: Mean blood pressure in mmHg.
            respiration_rate: Breaths per minute.
        """
        if submitter is None:
            return json.dumps({
                "status": "error",
                "error": "Predictions are unavailable while serving sample data",
            })

        form = PredictionForm(submitter)
        form.update("patient_id", patient_id)
        form.update("heart_rate", heart_rate)
        form.update("oxygen_sat", oxygen_sat)
        form.update("blood_pressure", blood_pressure)
        form.update("respiration_rate", respiration_rate)
        outcome = await form.submit()
        return json.dumps(outcome.as_dict())
