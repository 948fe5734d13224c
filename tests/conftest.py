"""Shared test fixtures for RiskView tests."""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("USE_MOCK_DATA", "true")
    monkeypatch.setenv("PREFERENCES_DB_PATH", ":memory:")
    monkeypatch.setenv("RISKVIEW_PREFERS_DARK", "")
    monkeypatch.setenv("API_BASE_URL", "http://api.test")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from riskview.core.api.models import HistoryPage, PatientRecord, TimeFilter  # noqa: E402
from riskview.core.query.controller import QueryKey  # noqa: E402

BASE_TIME = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


def run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def tick(times: int = 5) -> None:
    """Let scheduled tasks and callbacks run."""
    for _ in range(times):
        await asyncio.sleep(0)


def make_record(
    patient_id: str = "P1001",
    risk_score: float = 0.5,
    *,
    minutes: int = 0,
    alert: bool = False,
    explanation: str | None = None,
) -> PatientRecord:
    """A record stamped ``minutes`` after BASE_TIME."""
    return PatientRecord(
        id=patient_id,
        risk_score=risk_score,
        timestamp=BASE_TIME + timedelta(minutes=minutes),
        alert_triggered=alert,
        explanation=explanation,
    )


def make_page(
    records: list[PatientRecord] | None = None,
    *,
    total: int | None = None,
    page: int = 1,
    page_size: int = 5,
    time_filter: TimeFilter = TimeFilter.ALL,
) -> HistoryPage:
    records = records if records is not None else [make_record()]
    return HistoryPage(
        records=tuple(records),
        total_records=total if total is not None else len(records),
        page_index=page,
        page_size=page_size,
        time_filter=time_filter,
    )


# ---------------------------------------------------------------------------
# Controllable fetchers
# ---------------------------------------------------------------------------

class ControlledFetch:
    """Fetch function whose calls complete only when the test says so.

    Each call registers a future; ``resolve(i, value)`` / ``fail(i, exc)``
    completes the i-th call, in whatever order the test chooses.
    """

    def __init__(self) -> None:
        self.calls: list[QueryKey] = []
        self._futures: list[asyncio.Future] = []

    async def __call__(self, key: QueryKey) -> Any:
        future = asyncio.get_running_loop().create_future()
        self.calls.append(key)
        self._futures.append(future)
        return await future

    def resolve(self, index: int, value: Any) -> None:
        self._futures[index].set_result(value)

    def fail(self, index: int, exc: BaseException) -> None:
        self._futures[index].set_exception(exc)


class PagedFetch:
    """Immediate fetch serving a history of ``total`` records in pages."""

    def __init__(self, total: int, page_size: int = 5) -> None:
        self.total = total
        self.page_size = page_size
        self.calls: list[QueryKey] = []

    async def __call__(self, key: QueryKey) -> HistoryPage:
        self.calls.append(key)
        start = (key.page_index - 1) * self.page_size
        count = max(0, min(self.page_size, self.total - start))
        records = [
            make_record(key.entity_id, 0.1 * (i % 10), minutes=start + i)
            for i in range(count)
        ]
        return make_page(
            records,
            total=self.total,
            page=key.page_index,
            page_size=self.page_size,
            time_filter=key.time_filter or TimeFilter.ALL,
        )


class FakeHistoryAPI:
    """Stands in for RiskAPIClient in view tests."""

    def __init__(self, total: int = 5, page_size: int = 5) -> None:
        self._paged = PagedFetch(total, page_size)
        self.calls: list[tuple[str, int, int, str]] = []
        self.error: Exception | None = None

    async def fetch_history(self, patient_id, page_index, page_size, time_filter="all"):
        self.calls.append((patient_id, page_index, page_size, TimeFilter(time_filter).value))
        if self.error is not None:
            raise self.error
        return await self._paged(
            QueryKey(patient_id, page_index, TimeFilter(time_filter))
        )


@pytest.fixture
def controlled_fetch() -> ControlledFetch:
    return ControlledFetch()


@pytest.fixture
def fake_history_api() -> FakeHistoryAPI:
    return FakeHistoryAPI()


# ---------------------------------------------------------------------------
# Storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def preference_db():
    """Create an in-memory PreferenceDatabase for testing."""
    from riskview.core.storage.database import PreferenceDatabase

    db = PreferenceDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def sqlite_storage(preference_db):
    from riskview.core.preferences.storage import SQLitePreferenceStorage

    return SQLitePreferenceStorage(preference_db)
