"""RiskView MCP server — application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from riskview.core.api.client import RiskAPIClient
from riskview.core.config.settings import get_settings
from riskview.core.preferences.signals import signal_from_setting
from riskview.core.preferences.storage import (
    InMemoryPreferenceStorage,
    PreferenceStorage,
    SQLitePreferenceStorage,
)
from riskview.core.preferences.store import PreferenceStore
from riskview.core.storage.database import DatabaseError, PreferenceDatabase
from riskview.domains.clinical.sources import DashboardSource
from riskview.domains.clinical.sources.providers import (
    APIDashboardSource,
    MockPredictionSource,
)
from riskview.domains.clinical.tools.dashboard_tools import register_dashboard_tools
from riskview.domains.clinical.tools.preference_tools import register_preference_tools
from riskview.domains.clinical.views.dashboard import DashboardAggregator
from riskview.domains.clinical.views.history import HistoryFetcher
from riskview.domains.clinical.views.prediction import PredictionSubmitter

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def create_app(
    *,
    api_client_override: RiskAPIClient | None = None,
    dashboard_source_override: DashboardSource | None = None,
    preference_store_override: PreferenceStore | None = None,
) -> FastMCP:
    """Create and configure the RiskView MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Creates the prediction API client (or the sample-data source)
    3. Initializes the dashboard aggregator
    4. Initializes the persisted preference store
    5. Registers all tools
    """
    settings = get_settings()

    # --- Server instance ---
    server = FastMCP(
        "RiskView",
        instructions=(
            "Clinical risk-prediction dashboard. Provides a summary of recent "
            "predictions, paginated patient history with risk trends, single-"
            "patient risk predictions, and the light/dark display preference."
        ),
    )

    # --- Data sources ---
    history_fetcher: HistoryFetcher
    submitter: PredictionSubmitter | None
    if api_client_override is not None or not settings.use_mock_data:
        api = api_client_override or RiskAPIClient(
            settings.api_base_url, timeout=settings.query_timeout
        )
        history_fetcher = api
        submitter = api
        source: DashboardSource = dashboard_source_override or APIDashboardSource(api)
        logger.info("Prediction API configured for %s", settings.api_base_url)
    else:
        mock = MockPredictionSource()
        history_fetcher = mock
        submitter = None
        source = dashboard_source_override or mock
        logger.info("Using sample prediction data")

    aggregator = DashboardAggregator(
        source,
        recent_limit=settings.recent_predictions_limit,
        timeout=settings.query_timeout,
    )

    # --- Preference store ---
    if preference_store_override is not None:
        store = preference_store_override
    else:
        storage: PreferenceStorage
        try:
            database = PreferenceDatabase(settings.preferences_db_path)
            database.initialize()
            storage = SQLitePreferenceStorage(database)
        except DatabaseError as exc:
            logger.error("Failed to open preference database: %s", exc)
            logger.warning("Continuing with in-memory preferences for this session")
            storage = InMemoryPreferenceStorage()
        store = PreferenceStore(storage, signal_from_setting(settings.riskview_prefers_dark))
        store.initialize()

    # --- Register tools ---
    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        return {
            "status": "ok",
            "server": "RiskView",
            "version": VERSION,
            "data_source": source.data_source,
            "api_base_url": settings.api_base_url,
            "predictions_enabled": submitter is not None,
            "theme": store.state.mode.value,
        }

    register_dashboard_tools(
        server,
        aggregator,
        history_fetcher,
        submitter,
        page_size=settings.history_page_size,
        timeout=settings.query_timeout,
        max_history_views=settings.history_view_cache_size,
    )
    logger.info("Dashboard tools registered")

    register_preference_tools(server, store)
    logger.info("Preference tools registered")

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
