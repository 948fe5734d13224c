"""Keyed async query orchestration with stale-result protection.

A ``QueryController`` owns one live ``QueryState`` cell for one view. Each
dispatched fetch is tagged with the controller's epoch at issue time; when
it completes, its result is committed only if that epoch is still current.
Superseded responses are dropped without touching state, so the committed
data always belongs to the most recently issued key, whatever order the
network answers in.

Usage::

    controller = QueryController(fetch_page, timeout=10.0)
    controller.subscribe(render)
    controller.request(QueryKey("P1001", 1, TimeFilter.ALL))
    await controller.settled()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Protocol, TypeVar, runtime_checkable

from riskview.core.api.errors import TransportError
from riskview.core.api.models import TimeFilter

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# State types
# ---------------------------------------------------------------------------

class QueryStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class QueryKey:
    """Composite request key. Equality is structural."""

    entity_id: str
    page_index: int | None = None
    time_filter: TimeFilter | None = None

    @classmethod
    def aggregate(cls, entity_id: str = "dashboard") -> QueryKey:
        """Key for a refreshable aggregate with no page or filter."""
        return cls(entity_id=entity_id)

    @property
    def is_paged(self) -> bool:
        return self.page_index is not None

    def same_context(self, other: QueryKey | None) -> bool:
        """Whether ``other`` addresses the same entity and filter."""
        return (
            other is not None
            and other.entity_id == self.entity_id
            and other.time_filter == self.time_filter
        )


@dataclass(frozen=True)
class QueryState(Generic[T]):
    """Snapshot of a controller's state cell."""

    status: QueryStatus = QueryStatus.IDLE
    key: QueryKey | None = None
    data: T | None = None
    error: str | None = None

    @property
    def is_loading(self) -> bool:
        return self.status is QueryStatus.LOADING

    @property
    def has_data(self) -> bool:
        return self.data is not None


@runtime_checkable
class PagedResult(Protocol):
    """Committed data that knows how many pages its source holds."""

    @property
    def page_count(self) -> int: ...


Listener = Callable[[QueryState[Any]], None]


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class QueryController(Generic[T]):
    """Fetches data for the current key and commits only the freshest result.

    Must be driven from a running event loop: ``request`` schedules the
    fetch as a task and returns immediately with the updated state.
    """

    def __init__(
        self,
        fetch: Callable[[QueryKey], Awaitable[T]],
        *,
        timeout: float | None = None,
        error_prefix: str = "Request failed",
        name: str = "query",
    ) -> None:
        """Initialise the controller.

        Args:
            fetch: Coroutine function that loads data for a key. Any
                exception it raises is turned into ``error`` state.
            timeout: Seconds before an in-flight fetch is abandoned and the
                state moves to ``error``. ``None`` waits indefinitely.
            error_prefix: Prefix for user-facing error messages.
            name: Label used in log lines.
        """
        self._fetch = fetch
        self._timeout = timeout
        self._error_prefix = error_prefix
        self._name = name
        self._state: QueryState[T] = QueryState()
        self._data_key: QueryKey | None = None
        self._epoch = 0
        self._inflight: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> QueryState[T]:
        return self._state

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def page_count(self) -> int | None:
        """Page count of the committed data, if it is paged."""
        data = self._state.data
        if isinstance(data, PagedResult):
            return data.page_count
        return None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called after every state change."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def settled(self) -> QueryState[T]:
        """Wait until no fetch is in flight, then return the state."""
        while self._inflight is not None and not self._inflight.done():
            await asyncio.wait({self._inflight})
        return self._state

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def request(self, key: QueryKey) -> QueryState[T]:
        """Make ``key`` the current key, fetching only when needed."""
        current = self._state
        if key == current.key and current.status in (
            QueryStatus.LOADING,
            QueryStatus.SUCCESS,
        ):
            return current

        rejection = self._validate(key)
        if rejection is not None:
            logger.info("%s: rejected %s before dispatch: %s", self._name, key, rejection)
            return current

        return self._dispatch(key)

    def refetch(self) -> QueryState[T]:
        """Re-issue the current key under a new epoch (retry / refresh)."""
        key = self._state.key
        if key is None:
            return self._state
        return self._dispatch(key)

    def _validate(self, key: QueryKey) -> str | None:
        if not key.is_paged:
            return None
        if key.page_index < 1:
            return f"page {key.page_index} is below 1"

        page_count = self.page_count
        if page_count is not None and key.same_context(self._data_key):
            last_page = max(page_count, 1)
            if key.page_index > last_page:
                return f"page {key.page_index} is beyond last page {last_page}"
        return None

    def _dispatch(self, key: QueryKey) -> QueryState[T]:
        # Raises before any state changes when no loop is running
        loop = asyncio.get_running_loop()
        self._epoch += 1
        epoch = self._epoch
        self._commit(replace(
            self._state,
            status=QueryStatus.LOADING,
            key=key,
            error=None,
        ))

        task = loop.create_task(self._run(key, epoch))
        self._inflight = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug("%s: dispatched %s (epoch %d)", self._name, key, epoch)
        return self._state

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def _run(self, key: QueryKey, epoch: int) -> None:
        try:
            if self._timeout is not None:
                data = await asyncio.wait_for(self._fetch(key), self._timeout)
            else:
                data = await self._fetch(key)
        except asyncio.TimeoutError:
            self._complete_error(epoch, key, "the request timed out")
        except TransportError as exc:
            self._complete_error(epoch, key, str(exc))
        except Exception as exc:
            logger.exception("%s: unexpected failure fetching %s", self._name, key)
            self._complete_error(epoch, key, str(exc) or type(exc).__name__)
        else:
            self._complete_success(epoch, key, data)

    def _is_stale(self, epoch: int, key: QueryKey) -> bool:
        if epoch != self._epoch:
            logger.debug(
                "%s: discarded stale result for %s (epoch %d, current %d)",
                self._name, key, epoch, self._epoch,
            )
            return True
        return False

    def _complete_success(self, epoch: int, key: QueryKey, data: T) -> None:
        if self._is_stale(epoch, key):
            return
        if isinstance(data, PagedResult) and key.is_paged:
            last_page = max(data.page_count, 1)
            if key.page_index > last_page:
                self._complete_error(
                    epoch, key, f"page {key.page_index} is out of range (1-{last_page})"
                )
                return
        self._data_key = key
        self._commit(QueryState(
            status=QueryStatus.SUCCESS,
            key=key,
            data=data,
            error=None,
        ))

    def _complete_error(self, epoch: int, key: QueryKey, detail: str) -> None:
        if self._is_stale(epoch, key):
            return
        message = f"{self._error_prefix}: {detail}"
        logger.warning("%s: %s", self._name, message)
        self._commit(replace(
            self._state,
            status=QueryStatus.ERROR,
            key=key,
            error=message,
        ))

    def _commit(self, state: QueryState[T]) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("%s: state listener failed", self._name)
