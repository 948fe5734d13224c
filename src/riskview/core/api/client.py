"""HTTP client for the risk-prediction API.

Wraps the three endpoints the dashboard consumes into async methods that
return validated models. Transport failures and HTTP error statuses are
translated into ``TransportError`` carrying the server's ``detail`` message.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from riskview.core.api.errors import ResponseValidationError, TransportError
from riskview.core.api.models import (
    HistoryPage,
    PredictionResult,
    RecentPredictions,
    TimeFilter,
    Vitals,
)

logger = logging.getLogger(__name__)


class RiskAPIClient:
    """Async client for the risk-prediction API.

    Usage::

        async with RiskAPIClient("http://localhost:8000") as api:
            page = await api.fetch_history("P1001", 1, 5, TimeFilter.ALL)
            result = await api.submit_prediction(vitals)
    """

    def __init__(
        self,
        base_url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialise against ``base_url``.

        Args:
            base_url: Root URL of the prediction API.
            http_client: Pre-built client (tests inject one backed by
                ``httpx.MockTransport``). Owned by the caller when given.
            timeout: Per-request timeout in seconds for the owned client.
        """
        self._base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def submit_prediction(self, vitals: Vitals) -> PredictionResult:
        """Request a risk prediction for one set of vitals."""
        payload = await self._request("POST", "/predict", json=vitals.to_payload())
        return PredictionResult.from_dict(payload)

    async def fetch_history(
        self,
        patient_id: str,
        page_index: int,
        page_size: int,
        time_filter: TimeFilter | str = TimeFilter.ALL,
    ) -> HistoryPage:
        """Fetch one page of a patient's prediction history."""
        time_filter = TimeFilter(time_filter)
        payload = await self._request(
            "GET",
            f"/patients/{patient_id}/history",
            params={
                "page": page_index,
                "page_size": page_size,
                "time_filter": time_filter.value,
            },
        )
        return HistoryPage.from_response(
            payload,
            page_index=page_index,
            page_size=page_size,
            time_filter=time_filter,
        )

    async def fetch_recent_predictions(self, limit: int = 5) -> RecentPredictions:
        """Fetch the latest predictions across all patients."""
        payload = await self._request(
            "GET", "/predictions/recent", params={"limit": limit}
        )
        return RecentPredictions.from_dict(payload)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> RiskAPIClient:
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        logger.debug("%s %s", method, url)

        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.TimeoutException:
            logger.warning("Request timed out: %s %s", method, path)
            raise TransportError("The prediction service did not respond in time") from None
        except httpx.HTTPError as exc:
            logger.warning("Request failed: %s %s (%s)", method, path, exc)
            raise TransportError(
                f"Could not reach the prediction service: {exc}"
            ) from None

        if response.is_error:
            detail = _extract_detail(response)
            logger.warning(
                "Prediction service returned %d for %s %s: %s",
                response.status_code, method, path, detail,
            )
            raise TransportError(detail, status_code=response.status_code)

        try:
            parsed = response.json()
        except ValueError as exc:
            raise ResponseValidationError(f"Invalid JSON from {path}: {exc}") from exc

        if not isinstance(parsed, dict):
            raise ResponseValidationError(
                f"Expected JSON object from {path}, got {type(parsed).__name__}"
            )
        return parsed


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _extract_detail(response: httpx.Response) -> str:
    """Pull a human-readable message out of an error response.

    The API reports failures as ``{"detail": "..."}``; validation failures
    may carry a list of ``{"msg": ...}`` entries instead.
    """
    fallback = f"Request failed with status {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or fallback

    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, str) and detail:
        return detail
    if isinstance(detail, list):
        messages = [
            item.get("msg") for item in detail
            if isinstance(item, dict) and isinstance(item.get("msg"), str)
        ]
        if messages:
            return "; ".join(messages)
    return fallback
