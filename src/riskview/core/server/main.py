"""RiskView server entry point — ``python -m riskview.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from riskview.core.config.settings import Settings, get_settings
from riskview.core.server.app import create_app

logger = logging.getLogger(__name__)


def _is_loopback_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def _describe_backend(settings: Settings) -> str:
    if settings.use_mock_data:
        return "built-in sample predictions (predict_risk disabled)"
    return f"prediction API at {settings.api_base_url}"


def _check_settings(settings: Settings) -> None:
    """Reject settings the views cannot work with before the server starts."""
    if not settings.riskview_allow_insecure_bind and not _is_loopback_host(settings.riskview_host):
        raise RuntimeError(
            "Refusing to bind RiskView to a non-loopback host without an auth layer. "
            "Set RISKVIEW_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    for name in ("history_page_size", "recent_predictions_limit", "history_view_cache_size"):
        if getattr(settings, name) < 1:
            raise RuntimeError(f"{name.upper()} must be at least 1")


def run() -> None:
    """Start the RiskView MCP server with Streamable HTTP transport."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.riskview_log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    _check_settings(settings)
    logger.info(
        "Starting RiskView server on %s:%d serving %s",
        settings.riskview_host,
        settings.riskview_port,
        _describe_backend(settings),
    )
    if settings.query_timeout is None:
        logger.warning("QUERY_TIMEOUT_SECONDS is 0: fetches may wait indefinitely")

    mcp = create_app()
    mcp.run(
        transport="streamable-http",
        host=settings.riskview_host,
        port=settings.riskview_port,
    )


if __name__ == "__main__":
    run()
