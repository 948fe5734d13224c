"""Patient history view — paginated, filterable predictions with a trend chart.

The view owns one ``QueryController`` keyed by (patient id, page, time
filter). The patient id comes from the active route; page and filter come
from operator actions. ``snapshot()`` turns the committed page into a
display-ready model.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Any, Protocol

from riskview.core.api.models import HistoryPage, PatientRecord, TimeFilter
from riskview.core.query.controller import QueryController, QueryKey, QueryState
from riskview.domains.clinical.domain_logic.chart_projector import ChartPoint, project
from riskview.domains.clinical.domain_logic.risk_classifier import (
    ReferenceLine,
    RiskLevel,
    classify,
    format_risk,
    reference_lines,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 5
DEFAULT_MAX_VIEWS = 128
NO_EXPLANATION = "No explanation available"


class HistoryFetcher(Protocol):
    async def fetch_history(
        self,
        patient_id: str,
        page_index: int,
        page_size: int,
        time_filter: TimeFilter | str = TimeFilter.ALL,
    ) -> HistoryPage: ...


@dataclass(frozen=True)
class HistoryRow:
    """One table row: a record plus its classified level."""

    timestamp: datetime
    risk_score: float
    level: RiskLevel
    alert_label: str
    explanation: str

    @property
    def display(self) -> str:
        return format_risk(self.risk_score)

    @classmethod
    def from_record(cls, record: PatientRecord) -> HistoryRow:
        return cls(
            timestamp=record.timestamp,
            risk_score=record.risk_score,
            level=classify(record.risk_score),
            alert_label="Alert Sent" if record.alert_triggered else "No Alert",
            explanation=record.explanation or NO_EXPLANATION,
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "risk_score": self.risk_score,
            "level": self.level.value,
            "color": self.level.color,
            "display": self.display,
            "alert": self.alert_label,
            "explanation": self.explanation,
        }


@dataclass(frozen=True)
class HistorySnapshot:
    """Display-ready state of the history view.

    ``display`` is one of:

    * ``loading``: nothing committed yet and a fetch is running
    * ``error``: a fetch failed and there is no data to show; offer retry
    * ``empty``: the committed page holds no records
    * ``data``: records are shown; ``error``/``loading`` may accompany them
    """

    patient_id: str
    display: str
    page_index: int
    time_filter: TimeFilter
    loading: bool
    error: str | None
    rows: list[HistoryRow] = field(default_factory=list)
    chart: list[ChartPoint] = field(default_factory=list)
    reference_lines: list[ReferenceLine] = field(default_factory=list)
    total_records: int = 0
    page_count: int = 0
    latest: HistoryRow | None = None

    @property
    def show_pagination(self) -> bool:
        return self.page_count > 1

    @property
    def summary(self) -> str:
        return f"Showing {len(self.rows)} of {self.total_records} records"

    def as_dict(self) -> dict[str, Any]:
        return {
            "patient_id": self.patient_id,
            "display": self.display,
            "page": self.page_index,
            "time_filter": self.time_filter.value,
            "loading": self.loading,
            "error": self.error,
            "rows": [row.as_dict() for row in self.rows],
            "chart": [
                {"x": p.x, "y": p.y, "date": p.date, "time": p.time} for p in self.chart
            ],
            "reference_lines": [
                {"y": line.y, "label": line.label, "color": line.color}
                for line in self.reference_lines
            ],
            "total_records": self.total_records,
            "page_count": self.page_count,
            "show_pagination": self.show_pagination,
            "summary": self.summary,
            "latest": self.latest.as_dict() if self.latest else None,
        }


class PatientHistoryView:
    """State holder for one patient's history screen.

    Usage::

        view = PatientHistoryView(api, "P1001")
        view.load()
        await view.settled()
        view.change_time_filter(TimeFilter.WEEK)
    """

    def __init__(
        self,
        fetcher: HistoryFetcher,
        patient_id: str,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout: float | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        if not patient_id:
            raise ValueError("patient_id is required")
        self._fetcher = fetcher
        self._patient_id = patient_id
        self._page_size = page_size
        self._tz = tz
        self._page_index = 1
        self._time_filter = TimeFilter.ALL
        self._controller: QueryController[HistoryPage] = QueryController(
            self._fetch,
            timeout=timeout,
            error_prefix="Failed to fetch patient history",
            name=f"history[{patient_id}]",
        )

    @property
    def controller(self) -> QueryController[HistoryPage]:
        return self._controller

    @property
    def state(self) -> QueryState[HistoryPage]:
        return self._controller.state

    @property
    def page_index(self) -> int:
        return self._page_index

    @property
    def time_filter(self) -> TimeFilter:
        return self._time_filter

    # ------------------------------------------------------------------
    # Operator actions
    # ------------------------------------------------------------------

    def load(self) -> QueryState[HistoryPage]:
        return self._controller.request(self._key())

    def change_page(self, page_index: int) -> QueryState[HistoryPage]:
        """Move to ``page_index``; out-of-range pages leave the view unchanged."""
        key = self._key(page_index=page_index)
        state = self._controller.request(key)
        if state.key == key:
            self._page_index = page_index
        return state

    def change_time_filter(self, time_filter: TimeFilter | str) -> QueryState[HistoryPage]:
        """Apply a new time filter, returning to the first page."""
        self._time_filter = TimeFilter(time_filter)
        self._page_index = 1
        return self.load()

    def retry(self) -> QueryState[HistoryPage]:
        return self._controller.refetch()

    async def settled(self) -> QueryState[HistoryPage]:
        return await self._controller.settled()

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def snapshot(self) -> HistorySnapshot:
        state = self._controller.state
        loading = state.is_loading

        if not state.has_data:
            return HistorySnapshot(
                patient_id=self._patient_id,
                display="error" if state.error else "loading",
                page_index=self._page_index,
                time_filter=self._time_filter,
                loading=loading,
                error=state.error,
            )

        page = state.data
        rows = [HistoryRow.from_record(r) for r in page.records]
        latest_record = max(page.records, key=lambda r: r.timestamp, default=None)
        return HistorySnapshot(
            patient_id=self._patient_id,
            display="data" if rows else "empty",
            page_index=page.page_index,
            time_filter=page.time_filter,
            loading=loading,
            error=state.error,
            rows=rows,
            chart=project(page.records, tz=self._tz),
            reference_lines=reference_lines(),
            total_records=page.total_records,
            page_count=page.page_count,
            latest=HistoryRow.from_record(latest_record) if latest_record else None,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _key(self, *, page_index: int | None = None) -> QueryKey:
        return QueryKey(
            entity_id=self._patient_id,
            page_index=page_index if page_index is not None else self._page_index,
            time_filter=self._time_filter,
        )

    async def _fetch(self, key: QueryKey) -> HistoryPage:
        return await self._fetcher.fetch_history(
            key.entity_id,
            key.page_index,
            self._page_size,
            key.time_filter or TimeFilter.ALL,
        )


class HistoryViewCache:
    """Per-patient history views shared across tool calls.

    Each view comes with a lock; a caller must hold it from the first
    action until it has taken its snapshot, otherwise a concurrent call
    for the same patient can move the view to a different page in between.
    Past ``max_views`` patients, the least recently used view is dropped.
    """

    def __init__(
        self,
        fetcher: HistoryFetcher,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout: float | None = None,
        max_views: int = DEFAULT_MAX_VIEWS,
    ) -> None:
        if max_views < 1:
            raise ValueError("max_views must be positive")
        self._fetcher = fetcher
        self._page_size = page_size
        self._timeout = timeout
        self._max_views = max_views
        self._entries: OrderedDict[str, tuple[PatientHistoryView, asyncio.Lock]] = (
            OrderedDict()
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, patient_id: object) -> bool:
        return patient_id in self._entries

    def get(self, patient_id: str) -> tuple[PatientHistoryView, asyncio.Lock]:
        entry = self._entries.get(patient_id)
        if entry is not None:
            self._entries.move_to_end(patient_id)
            return entry

        view = PatientHistoryView(
            self._fetcher, patient_id, page_size=self._page_size, timeout=self._timeout
        )
        entry = (view, asyncio.Lock())
        self._entries[patient_id] = entry
        if len(self._entries) > self._max_views:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Dropped history view for %s", evicted)
        return entry
