"""
Test Ingest Loop - Pagination, throttling, retry threshold and cancellation

The loop is driven by a scripted fetcher and a recording sleep, so no real
HTTP requests or timers are involved.
"""

import sys
import os
import threading

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from src.coreutils.errors import (
    FatalFetchError,
    MalformedPageError,
    ThrottleCondition,
    TransientFetchError,
)
from src.extract.schemas import PageResponse, QueryParameters
from src.load.csv_report import render_csv
from src.orchestration.ingest_loop import (
    IngestLoop,
    LoopState,
    RunState,
    extract_collection_label,
    on_failure,
    on_page,
    on_throttle,
)
from src.transformation.aggregator import reduce_daily_stats

QUERY = QueryParameters("slug", "test-collection", None)
THROTTLED = "Request was throttled. Expected available in 3 seconds."


class ScriptedFetcher:
    """Returns (or raises) the scripted responses in order and records cursors"""

    def __init__(self, responses, on_call=None):
        self.responses = list(responses)
        self.cursors = []
        self.on_call = on_call

    def __call__(self, query, cursor):
        self.cursors.append(cursor)
        if self.on_call:
            self.on_call(len(self.cursors))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_loop(responses, **kwargs):
    fetcher = ScriptedFetcher(responses, kwargs.pop("on_call", None))
    sleeps = []
    loop = IngestLoop(fetcher, sleep=sleeps.append, **kwargs)
    return loop, fetcher, sleeps


def page(next_cursor, events):
    return PageResponse(next_cursor=next_cursor, events=events)


def test_two_page_example(sale_event):
    loop, fetcher, sleeps = make_loop(
        [
            page("abc", [sale_event(total_price="1000000000000000000")]),
            page(None, [sale_event(total_price="2000000000000000000")]),
        ]
    )

    result = loop.run(QUERY)

    assert fetcher.cursors == [None, "abc"]
    assert sleeps == []
    assert not result.cancelled
    assert result.final_state is LoopState.DONE
    rows = reduce_daily_stats(result.aggregate)
    assert render_csv(rows).splitlines()[1] == "2023-01-01,3,1.5,1,2"
    assert result.run_state.request_count == 2
    assert result.run_state.total_event_count == 2


def test_null_cursor_ends_after_one_request(sale_event):
    loop, fetcher, _ = make_loop([page(None, [sale_event()]), page(None, [])])

    loop.run(QUERY)

    assert len(fetcher.cursors) == 1


def test_empty_string_cursor_also_ends(sale_event):
    loop, fetcher, _ = make_loop([page("", [sale_event()])])

    result = loop.run(QUERY)

    assert len(fetcher.cursors) == 1
    assert result.run_state.cursor is None


def test_throttle_retries_same_cursor(sale_event):
    loop, fetcher, sleeps = make_loop(
        [
            page("abc", [sale_event()]),
            PageResponse(next_cursor=None, throttle_detail=THROTTLED),
            page(None, [sale_event()]),
        ]
    )

    result = loop.run(QUERY)

    assert fetcher.cursors == [None, "abc", "abc"]
    assert sleeps == [pytest.approx(3 * 1.01)]
    assert sleeps[0] >= 3
    assert result.run_state.request_count == 2
    assert result.run_state.total_event_count == 2


def test_throttle_without_hint_waits_default():
    loop, _, sleeps = make_loop(
        [
            PageResponse(next_cursor=None, throttle_detail="Request was throttled."),
            page(None, []),
        ]
    )

    loop.run(QUERY)

    assert sleeps == [pytest.approx(10.1)]


def test_throttle_does_not_count_as_failure():
    throttles = [PageResponse(next_cursor=None, throttle_detail=THROTTLED)] * 6
    loop, fetcher, _ = make_loop(throttles + [page(None, [])])

    result = loop.run(QUERY)

    assert len(fetcher.cursors) == 7
    assert result.run_state.consecutive_failure_count == 0


def test_five_consecutive_failures_abort():
    errors = [TransientFetchError(f"boom {i}") for i in range(5)]
    loop, fetcher, sleeps = make_loop(errors)

    with pytest.raises(FatalFetchError) as exc_info:
        loop.run(QUERY)

    assert len(fetcher.cursors) == 5
    assert exc_info.value.attempts == 5
    assert "boom 4" in str(exc_info.value)
    assert exc_info.value.cause is errors[-1]
    # linear backoff between attempts, no wait after the last one
    assert sleeps == [1.0, 2.0, 3.0, 4.0]


def test_four_failures_then_success_completes(sale_event):
    errors = [TransientFetchError("boom") for _ in range(4)]
    loop, fetcher, sleeps = make_loop(errors + [page(None, [sale_event()])])

    result = loop.run(QUERY)

    assert len(fetcher.cursors) == 5
    assert sleeps == [1.0, 2.0, 3.0, 4.0]
    assert result.run_state.consecutive_failure_count == 0
    assert result.run_state.total_event_count == 1


def test_failures_keep_cursor_and_reset_after_success(sale_event):
    responses = (
        [page("abc", [sale_event()])]
        + [TransientFetchError("boom")] * 4
        + [page("def", [sale_event()])]
        + [MalformedPageError("no events")] * 4
        + [page(None, [sale_event()])]
    )
    loop, fetcher, _ = make_loop(responses)

    result = loop.run(QUERY)

    assert fetcher.cursors == [None] + ["abc"] * 5 + ["def"] * 5
    assert result.run_state.total_event_count == 3


def test_malformed_pages_count_towards_threshold():
    loop, fetcher, _ = make_loop([MalformedPageError("no asset_events")] * 5)

    with pytest.raises(FatalFetchError):
        loop.run(QUERY)

    assert len(fetcher.cursors) == 5


def test_malformed_event_is_skipped(sale_event):
    broken = sale_event()
    del broken["payment_token"]
    loop, _, _ = make_loop(
        [page(None, [sale_event(), broken, sale_event(date="2023-01-02")])]
    )

    result = loop.run(QUERY)

    assert result.run_state.total_event_count == 2
    assert result.skipped_events == 1
    assert sorted(date for date, _ in result.aggregate.items()) == [
        "2023-01-01",
        "2023-01-02",
    ]


def test_num_sales_matches_parsed_events(sale_event):
    broken = {"event_timestamp": "2023-01-01T00:00:00", "total_price": "1"}
    pages = [
        page("p1", [sale_event(date="2023-01-01"), broken]),
        page("p2", [sale_event(date="2023-01-02"), sale_event(date="2023-01-01")]),
        page("p3", []),
        page(None, [broken, sale_event(date="2023-01-03", total_price="5")]),
    ]
    loop, _, _ = make_loop(pages)

    result = loop.run(QUERY)
    rows = reduce_daily_stats(result.aggregate)

    assert sum(row.num_sales for row in rows) == result.run_state.total_event_count == 4
    assert result.skipped_events == 2


def test_collection_label_from_first_event(sale_event):
    loop, _, _ = make_loop(
        [
            page("abc", [sale_event(collection_name="Cool Cats")]),
            page(None, [sale_event(collection_name="Something Else")]),
        ]
    )

    result = loop.run(QUERY)

    assert result.run_state.collection_label == "Cool Cats"


def test_collection_label_when_first_page_is_empty(sale_event):
    loop, fetcher, _ = make_loop(
        [
            page("abc", []),
            page("def", [sale_event(collection_name="Cool Cats")]),
            page(None, [sale_event(collection_name="Something Else")]),
        ]
    )

    result = loop.run(QUERY)

    assert fetcher.cursors == [None, "abc", "def"]
    assert result.run_state.collection_label == "Cool Cats"


def test_cancel_before_start():
    cancel_event = threading.Event()
    cancel_event.set()
    loop, fetcher, _ = make_loop([], cancel_event=cancel_event)

    result = loop.run(QUERY)

    assert result.cancelled
    assert result.final_state is LoopState.CANCELLED
    assert fetcher.cursors == []


def test_cancel_between_pages(sale_event):
    cancel_event = threading.Event()
    loop, fetcher, _ = make_loop(
        [page("abc", [sale_event()]), page(None, [sale_event()])],
        cancel_event=cancel_event,
        on_call=lambda calls: cancel_event.set(),
    )

    result = loop.run(QUERY)

    assert result.cancelled
    assert fetcher.cursors == [None]
    assert result.run_state.total_event_count == 1


def test_step_does_not_fetch_once_cancelled():
    cancel_event = threading.Event()
    cancel_event.set()
    loop, fetcher, _ = make_loop([page(None, [])], cancel_event=cancel_event)

    step = loop.step(QUERY)

    assert step.state is LoopState.CANCELLED
    assert fetcher.cursors == []


def test_loop_state_after_abort():
    loop, _, _ = make_loop([TransientFetchError("boom")] * 5)

    with pytest.raises(FatalFetchError):
        loop.run(QUERY)

    assert loop.loop_state is LoopState.ABORTED


def test_default_wait_returns_early_on_cancel():
    cancel_event = threading.Event()
    cancel_event.set()
    loop = IngestLoop(lambda query, cursor: None, cancel_event=cancel_event)

    # would block for an hour if the wait were not interruptible
    loop.sleep(3600)

    assert loop.cancelled


def test_on_page_transition(sale_event):
    state = RunState(cursor="abc", request_count=3, consecutive_failure_count=2)

    new_state, step = on_page(state, page("def", [sale_event(), {"bad": True}]))

    assert step.state is LoopState.ADVANCING
    assert len(step.sales) == 1
    assert step.skipped_events == 1
    assert new_state.cursor == "def"
    assert new_state.request_count == 4
    assert new_state.consecutive_failure_count == 0
    assert state.cursor == "abc"


def test_on_page_done_transition():
    _, step = on_page(RunState(cursor="abc"), page(None, []))

    assert step.state is LoopState.DONE


def test_on_throttle_transition():
    state = RunState(cursor="abc", consecutive_failure_count=1)

    new_state, step = on_throttle(state, ThrottleCondition(THROTTLED, 7))

    assert new_state is state
    assert step.state is LoopState.THROTTLED
    assert step.wait_seconds == pytest.approx(7.07)


def test_on_failure_transitions():
    state = RunState(cursor="abc")

    state, step = on_failure(state, TransientFetchError("boom"))
    assert step.state is LoopState.FATAL_ERROR
    assert step.wait_seconds == 1.0
    assert state.cursor == "abc"

    state, step = on_failure(state, MalformedPageError("no events"))
    assert step.state is LoopState.MALFORMED_PAGE
    assert step.wait_seconds == 2.0

    state = RunState(consecutive_failure_count=4)
    state, step = on_failure(state, TransientFetchError("boom"))
    assert step.state is LoopState.ABORTED
    assert state.consecutive_failure_count == 5


def test_extract_collection_label():
    assert extract_collection_label({"asset": {"asset_contract": {"name": "X"}}}) == "X"
    assert extract_collection_label({"asset": None}) is None
    assert extract_collection_label({}) is None
    assert extract_collection_label({"asset": {"asset_contract": {"name": ""}}}) is None
