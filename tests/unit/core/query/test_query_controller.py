"""Tests for QueryController — epoch-guarded commits and the pagination guard."""

from __future__ import annotations

import asyncio

import pytest

from conftest import ControlledFetch, PagedFetch, make_page, make_record, run, tick

from riskview.core.api.errors import TransportError
from riskview.core.api.models import TimeFilter
from riskview.core.query.controller import (
    QueryController,
    QueryKey,
    QueryState,
    QueryStatus,
)

K1 = QueryKey("P1", 1, TimeFilter.ALL)
K2 = QueryKey("P1", 2, TimeFilter.ALL)


class TestQueryKey:
    def test_structural_equality(self):
        assert QueryKey("P1", 1, TimeFilter.ALL) == QueryKey("P1", 1, TimeFilter.ALL)
        assert QueryKey("P1", 1, TimeFilter.ALL) != QueryKey("P1", 1, TimeFilter.WEEK)

    def test_aggregate_key_is_not_paged(self):
        key = QueryKey.aggregate()
        assert not key.is_paged
        assert key.time_filter is None


class TestLifecycle:
    def test_initial_state_is_idle(self):
        controller = QueryController(ControlledFetch())
        assert controller.state == QueryState()
        assert controller.state.status is QueryStatus.IDLE

    def test_request_sets_loading_then_success(self):
        page = make_page()

        async def scenario():
            fetch = ControlledFetch()
            controller = QueryController(fetch)
            state = controller.request(K1)
            assert state.status is QueryStatus.LOADING
            assert state.key == K1
            await tick()
            fetch.resolve(0, page)
            return await controller.settled()

        state = run(scenario())
        assert state.status is QueryStatus.SUCCESS
        assert state.data is page
        assert state.error is None

    def test_listeners_see_every_transition(self):
        async def scenario():
            controller = QueryController(PagedFetch(total=5))
            seen: list[QueryStatus] = []
            controller.subscribe(lambda s: seen.append(s.status))
            controller.request(K1)
            await controller.settled()
            return seen

        assert run(scenario()) == [QueryStatus.LOADING, QueryStatus.SUCCESS]

    def test_unsubscribe_stops_notifications(self):
        async def scenario():
            controller = QueryController(PagedFetch(total=5))
            seen = []
            unsubscribe = controller.subscribe(seen.append)
            unsubscribe()
            controller.request(K1)
            await controller.settled()
            return seen

        assert run(scenario()) == []


class TestIdempotentRequests:
    def test_same_key_while_loading_does_not_refetch(self):
        async def scenario():
            fetch = ControlledFetch()
            controller = QueryController(fetch)
            controller.request(K1)
            controller.request(K1)
            await tick()
            return fetch.calls, controller.epoch

        calls, epoch = run(scenario())
        assert calls == [K1]
        assert epoch == 1

    def test_same_key_after_success_does_not_refetch(self):
        async def scenario():
            fetch = PagedFetch(total=5)
            controller = QueryController(fetch)
            controller.request(K1)
            await controller.settled()
            controller.request(K1)
            await controller.settled()
            return fetch.calls

        assert run(scenario()) == [K1]

    def test_same_key_after_error_refetches(self):
        async def scenario():
            fetch = ControlledFetch()
            controller = QueryController(fetch)
            controller.request(K1)
            await tick()
            fetch.fail(0, TransportError("down"))
            await controller.settled()
            controller.request(K1)
            await tick()
            return fetch.calls

        assert run(scenario()) == [K1, K1]

    def test_refetch_issues_new_epoch(self):
        async def scenario():
            fetch = PagedFetch(total=5)
            controller = QueryController(fetch)
            controller.request(K1)
            await controller.settled()
            controller.refetch()
            await controller.settled()
            return fetch.calls, controller.epoch

        calls, epoch = run(scenario())
        assert calls == [K1, K1]
        assert epoch == 2

    def test_refetch_without_key_is_noop(self):
        async def scenario():
            fetch = ControlledFetch()
            controller = QueryController(fetch)
            state = controller.refetch()
            await tick()
            return state, fetch.calls

        state, calls = run(scenario())
        assert state.status is QueryStatus.IDLE
        assert calls == []


class TestStaleResults:
    """k1 then k2 before k1 resolves: only k2's response may be committed."""

    def test_newer_resolves_first_then_stale_arrives(self):
        page1 = make_page([make_record(minutes=1)], page=1, total=10)
        page2 = make_page([make_record(minutes=2)], page=2, total=10)

        async def scenario():
            fetch = ControlledFetch()
            controller = QueryController(fetch)
            controller.request(K1)
            controller.request(K2)
            await tick()
            fetch.resolve(1, page2)
            await tick()
            after_k2 = controller.state
            fetch.resolve(0, page1)
            await tick()
            return after_k2, controller.state

        after_k2, final = run(scenario())
        assert after_k2.status is QueryStatus.SUCCESS
        assert after_k2.data is page2
        assert final is after_k2

    def test_stale_resolves_first_is_ignored(self):
        page1 = make_page([make_record(minutes=1)], page=1, total=10)
        page2 = make_page([make_record(minutes=2)], page=2, total=10)

        async def scenario():
            fetch = ControlledFetch()
            controller = QueryController(fetch)
            controller.request(K1)
            controller.request(K2)
            await tick()
            fetch.resolve(0, page1)
            await tick()
            while_pending = controller.state
            fetch.resolve(1, page2)
            return while_pending, await controller.settled()

        while_pending, final = run(scenario())
        assert while_pending.status is QueryStatus.LOADING
        assert while_pending.key == K2
        assert while_pending.data is None
        assert final.data is page2
        assert final.key == K2

    def test_stale_failure_is_not_surfaced(self):
        page2 = make_page(page=2, total=10)

        async def scenario():
            fetch = ControlledFetch()
            controller = QueryController(fetch)
            controller.request(K1)
            controller.request(K2)
            await tick()
            fetch.resolve(1, page2)
            await tick()
            fetch.fail(0, TransportError("late failure"))
            await tick()
            return controller.state

        state = run(scenario())
        assert state.status is QueryStatus.SUCCESS
        assert state.error is None

    def test_stale_result_does_not_notify_listeners(self):
        async def scenario():
            fetch = ControlledFetch()
            controller = QueryController(fetch)
            controller.request(K1)
            controller.request(K2)
            await tick()
            fetch.resolve(1, make_page(page=2, total=10))
            await tick()
            seen = []
            controller.subscribe(seen.append)
            fetch.resolve(0, make_page(page=1, total=10))
            await tick()
            return seen

        assert run(scenario()) == []

    def test_previous_data_retained_while_loading_new_key(self):
        page1 = make_page(page=1, total=10)

        async def scenario():
            fetch = ControlledFetch()
            controller = QueryController(fetch)
            controller.request(K1)
            await tick()
            fetch.resolve(0, page1)
            await controller.settled()
            return controller.request(K2)

        state = run(scenario())
        assert state.status is QueryStatus.LOADING
        assert state.key == K2
        assert state.data is page1


class TestFailures:
    def test_error_retains_last_good_data(self):
        page1 = make_page(page=1, total=10)

        async def scenario():
            fetch = ControlledFetch()
            controller = QueryController(fetch, error_prefix="Failed to fetch patient history")
            controller.request(K1)
            await tick()
            fetch.resolve(0, page1)
            await controller.settled()
            controller.request(K2)
            await tick()
            fetch.fail(1, TransportError("Patient not found"))
            return await controller.settled()

        state = run(scenario())
        assert state.status is QueryStatus.ERROR
        assert state.error == "Failed to fetch patient history: Patient not found"
        assert state.data is page1
        assert state.key == K2

    def test_error_without_prior_data(self):
        async def scenario():
            fetch = ControlledFetch()
            controller = QueryController(fetch)
            controller.request(K1)
            await tick()
            fetch.fail(0, TransportError("boom"))
            return await controller.settled()

        state = run(scenario())
        assert state.status is QueryStatus.ERROR
        assert state.data is None
        assert "boom" in state.error

    def test_unexpected_exception_becomes_error_state(self):
        async def failing(key):
            raise RuntimeError("parser exploded")

        async def scenario():
            controller = QueryController(failing)
            controller.request(K1)
            return await controller.settled()

        state = run(scenario())
        assert state.status is QueryStatus.ERROR
        assert "parser exploded" in state.error

    def test_success_after_error_clears_error(self):
        async def scenario():
            fetch = ControlledFetch()
            controller = QueryController(fetch)
            controller.request(K1)
            await tick()
            fetch.fail(0, TransportError("down"))
            await controller.settled()
            controller.refetch()
            await tick()
            fetch.resolve(1, make_page())
            return await controller.settled()

        state = run(scenario())
        assert state.status is QueryStatus.SUCCESS
        assert state.error is None

    def test_timeout_moves_to_error(self):
        async def never(key):
            await asyncio.sleep(3600)

        async def scenario():
            controller = QueryController(never, timeout=0.01)
            controller.request(K1)
            return await controller.settled()

        state = run(scenario())
        assert state.status is QueryStatus.ERROR
        assert "timed out" in state.error

    def test_listener_failure_does_not_break_commit(self):
        def bad_listener(state):
            raise ValueError("listener bug")

        async def scenario():
            controller = QueryController(PagedFetch(total=5))
            controller.subscribe(bad_listener)
            controller.request(K1)
            return await controller.settled()

        assert run(scenario()).status is QueryStatus.SUCCESS


class TestPagination:
    def test_page_count_from_committed_page(self):
        async def scenario():
            controller = QueryController(PagedFetch(total=12))
            controller.request(K1)
            await controller.settled()
            return controller.page_count

        assert run(scenario()) == 3

    def test_page_beyond_last_is_rejected_without_dispatch(self):
        k3 = QueryKey("P1", 3, TimeFilter.ALL)
        k4 = QueryKey("P1", 4, TimeFilter.ALL)

        async def scenario():
            fetch = PagedFetch(total=12)
            controller = QueryController(fetch)
            controller.request(K1)
            await controller.settled()
            controller.request(k3)
            before = await controller.settled()
            after = controller.request(k4)
            await tick()
            return fetch.calls, before, after

        calls, before, after = run(scenario())
        assert calls == [K1, k3]
        assert after is before
        assert after.key == k3
        assert after.data.page_index == 3

    def test_page_below_one_is_rejected(self):
        async def scenario():
            fetch = ControlledFetch()
            controller = QueryController(fetch)
            state = controller.request(QueryKey("P1", 0, TimeFilter.ALL))
            await tick()
            return state, fetch.calls

        state, calls = run(scenario())
        assert state.status is QueryStatus.IDLE
        assert calls == []

    def test_new_filter_is_not_bounded_by_old_page_count(self):
        week_page3 = QueryKey("P1", 3, TimeFilter.WEEK)

        async def scenario():
            fetch = ControlledFetch()
            controller = QueryController(fetch)
            controller.request(K1)
            await tick()
            fetch.resolve(0, make_page(total=5))
            await controller.settled()
            state = controller.request(week_page3)
            await tick()
            return state, fetch.calls

        state, calls = run(scenario())
        assert state.key == week_page3
        assert calls[-1] == week_page3

    def test_empty_history_allows_first_page_only(self):
        async def scenario():
            fetch = PagedFetch(total=0)
            controller = QueryController(fetch)
            controller.request(K1)
            await controller.settled()
            controller.request(K2)
            await tick()
            return controller.page_count, fetch.calls

        page_count, calls = run(scenario())
        assert page_count == 0
        assert calls == [K1]

    def test_response_beyond_its_own_page_count_is_not_committed(self):
        page1 = make_page(total=10)
        k5 = QueryKey("P1", 5, TimeFilter.MONTH)

        async def scenario():
            fetch = ControlledFetch()
            controller = QueryController(fetch)
            controller.request(K1)
            await tick()
            fetch.resolve(0, page1)
            await controller.settled()
            controller.request(k5)
            await tick()
            fetch.resolve(1, make_page([], total=3, page=5, time_filter=TimeFilter.MONTH))
            return await controller.settled()

        state = run(scenario())
        assert state.status is QueryStatus.ERROR
        assert "out of range" in state.error
        assert state.data is page1


class TestDispatchWithoutLoop:
    def test_request_outside_event_loop_leaves_state_untouched(self):
        fetch = ControlledFetch()
        controller = QueryController(fetch)
        with pytest.raises(RuntimeError):
            controller.request(K1)
        assert controller.state == QueryState()
        assert controller.epoch == 0

    def test_later_request_inside_loop_still_works(self):
        controller = QueryController(PagedFetch(total=5))
        with pytest.raises(RuntimeError):
            controller.request(K1)

        async def scenario():
            controller.request(K1)
            return await controller.settled()

        state = run(scenario())
        assert state.status is QueryStatus.SUCCESS
        assert controller.epoch == 1


class TestHasData:
    def test_has_data_tracks_committed_data(self):
        assert not QueryState().has_data
        assert QueryState(status=QueryStatus.ERROR, error="down").has_data is False
        assert QueryState(status=QueryStatus.LOADING, data=make_page()).has_data
