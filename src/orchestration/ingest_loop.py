"""
Ingest Loop - Orchestration Layer

Cursor-driven retrieval of sale events. Each fetched page is classified and
handed to a pure transition function that returns the next RunState plus a
Step describing what the loop should do (fold sales, wait, stop, abort).

States:
    FETCHING -> THROTTLED      -> FETCHING (same cursor, after the suggested wait)
    FETCHING -> MALFORMED_PAGE -> FETCHING (same cursor, linear backoff)
    FETCHING -> FATAL_ERROR    -> FETCHING (same cursor, linear backoff) | ABORTED
    FETCHING -> ADVANCING      -> FETCHING (next cursor) | DONE (no cursor)
    FETCHING -> CANCELLED      (cancel event set, checked before every fetch)

Sleeping and cancellation are injected so the loop can be driven in tests
without real timers.
"""

import threading
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Optional, Tuple

from src.coreutils.errors import (
    FatalFetchError,
    MalformedPageError,
    ThrottleCondition,
    TransientFetchError,
)
from src.extract.opensea_api import match_throttle
from src.extract.schemas import PageResponse, QueryParameters
from src.transformation.aggregator import DailyAggregate
from src.transformation.normalizer import NormalizedSale, try_normalize

logger = logging.getLogger(__name__)

MAX_CONSECUTIVE_FAILURES = 5
FAILURE_BACKOFF_SECONDS = 1.0
DEFAULT_THROTTLE_SECONDS = 10
THROTTLE_BUFFER = 1.01

FetchPage = Callable[[QueryParameters, Optional[str]], PageResponse]


class LoopState(Enum):
    FETCHING = "fetching"
    THROTTLED = "throttled"
    MALFORMED_PAGE = "malformed_page"
    FATAL_ERROR = "fatal_error"
    ADVANCING = "advancing"
    DONE = "done"
    ABORTED = "aborted"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RunState:
    """Loop counters; replaced (never mutated) on every transition"""

    cursor: Optional[str] = None
    total_event_count: int = 0
    request_count: int = 0
    consecutive_failure_count: int = 0
    collection_label: Optional[str] = None


@dataclass(frozen=True)
class Step:
    """What the loop does after a transition"""

    state: LoopState
    wait_seconds: float = 0.0
    sales: Tuple[NormalizedSale, ...] = ()
    skipped_events: int = 0
    error: Optional[BaseException] = None


@dataclass
class IngestResult:
    aggregate: DailyAggregate
    run_state: RunState
    final_state: LoopState
    skipped_events: int = 0

    @property
    def cancelled(self) -> bool:
        return self.final_state is LoopState.CANCELLED


def extract_collection_label(event: Any) -> Optional[str]:
    """Collection name from an event's asset contract, if present"""
    try:
        name = event["asset"]["asset_contract"]["name"]
    except (KeyError, TypeError):
        return None
    return name if isinstance(name, str) and name else None


def on_throttle(
    state: RunState,
    throttle: ThrottleCondition,
    default_seconds: int = DEFAULT_THROTTLE_SECONDS,
    buffer: float = THROTTLE_BUFFER,
) -> Tuple[RunState, Step]:
    """Throttled: keep the cursor and counters, wait the suggested time plus a buffer"""
    wait_seconds = (throttle.suggested_seconds or default_seconds) * buffer
    return state, Step(LoopState.THROTTLED, wait_seconds=wait_seconds, error=throttle)


def on_page(state: RunState, page: PageResponse) -> Tuple[RunState, Step]:
    """
    Well-formed page: adopt the next cursor and normalize every event

    Events that fail normalization are counted as skipped and otherwise
    ignored; they never abort the page.
    """
    sales = []
    skipped = 0
    for event in page.events:
        result = try_normalize(event)
        if result.ok:
            sales.append(result.sale)
        else:
            skipped += 1
            logger.debug(f"Skipping malformed event: {result.error}")

    label = state.collection_label
    if label is None and page.events:
        label = extract_collection_label(page.events[0])

    new_state = replace(
        state,
        cursor=page.next_cursor or None,
        total_event_count=state.total_event_count + len(sales),
        request_count=state.request_count + 1,
        consecutive_failure_count=0,
        collection_label=label,
    )
    next_state = LoopState.ADVANCING if new_state.cursor else LoopState.DONE
    return new_state, Step(next_state, sales=tuple(sales), skipped_events=skipped)


def on_failure(
    state: RunState,
    error: TransientFetchError,
    max_failures: int = MAX_CONSECUTIVE_FAILURES,
    backoff_seconds: float = FAILURE_BACKOFF_SECONDS,
) -> Tuple[RunState, Step]:
    """Failed fetch: count it, back off linearly, abort at the threshold"""
    failures = state.consecutive_failure_count + 1
    new_state = replace(state, consecutive_failure_count=failures)

    if failures >= max_failures:
        return new_state, Step(LoopState.ABORTED, error=error)

    kind = (
        LoopState.MALFORMED_PAGE
        if isinstance(error, MalformedPageError)
        else LoopState.FATAL_ERROR
    )
    return new_state, Step(kind, wait_seconds=backoff_seconds * failures, error=error)


class IngestLoop:
    """Fetches every page for a query and folds sales into a DailyAggregate"""

    def __init__(
        self,
        fetch_page: FetchPage,
        sleep: Optional[Callable[[float], Any]] = None,
        cancel_event: Optional[threading.Event] = None,
        max_failures: int = MAX_CONSECUTIVE_FAILURES,
        backoff_seconds: float = FAILURE_BACKOFF_SECONDS,
    ):
        """
        Args:
            fetch_page: Callable fetching one page for (query, cursor)
            sleep: Wait function; defaults to an interruptible wait on cancel_event
            cancel_event: Set to request cancellation at the next iteration boundary
            max_failures: Consecutive failures that abort the run
            backoff_seconds: Base of the linear backoff between failed fetches
        """
        self.fetch_page = fetch_page
        self.cancel_event = cancel_event or threading.Event()
        self.sleep = sleep or self._wait
        self.max_failures = max_failures
        self.backoff_seconds = backoff_seconds

        self.run_state = RunState()
        self.loop_state = LoopState.FETCHING
        self.aggregate = DailyAggregate()
        self.skipped_events = 0

    def _wait(self, seconds: float) -> None:
        # returns early when cancellation is requested
        self.cancel_event.wait(seconds)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def _result(self) -> IngestResult:
        return IngestResult(
            aggregate=self.aggregate,
            run_state=self.run_state,
            final_state=self.loop_state,
            skipped_events=self.skipped_events,
        )

    def step(self, query: QueryParameters) -> Step:
        """Fetch the page at the current cursor and apply the matching transition"""
        if self.cancelled:
            return Step(LoopState.CANCELLED)

        try:
            page = self.fetch_page(query, self.run_state.cursor)
        except TransientFetchError as e:
            self.run_state, step = on_failure(
                self.run_state, e, self.max_failures, self.backoff_seconds
            )
            return step

        throttle = match_throttle(page.throttle_detail)
        if throttle is not None:
            _, step = on_throttle(self.run_state, throttle)
            return step

        self.run_state, step = on_page(self.run_state, page)
        for sale in step.sales:
            self.aggregate.add(sale)
        self.skipped_events += step.skipped_events
        return step

    def run(self, query: QueryParameters) -> IngestResult:
        """
        Run the loop until the API stops returning a cursor

        Args:
            query: Query to ingest

        Returns:
            IngestResult: Aggregate, final counters and the state the loop stopped in

        Raises:
            FatalFetchError: After max_failures consecutive failed fetches
        """
        logger.info(
            f"🔄 Fetching sale events for {query.filter_kind} {query.filter_value}"
        )
        self.run_state = RunState()
        self.aggregate = DailyAggregate()
        self.skipped_events = 0

        while True:
            self.loop_state = LoopState.FETCHING
            step = self.step(query)
            self.loop_state = step.state

            if step.state is LoopState.CANCELLED:
                logger.warning(
                    f"🛑 Ingest cancelled after {self.run_state.request_count} requests"
                )
                return self._result()

            if step.state is LoopState.DONE:
                logger.info(
                    f"✅ Fetched {self.run_state.total_event_count} sales in "
                    f"{self.run_state.request_count} requests "
                    f"({self.skipped_events} malformed events skipped)"
                )
                return self._result()

            if step.state is LoopState.ABORTED:
                logger.error(
                    f"❌ An unexpected error occurred requesting OpenSea data: {step.error}"
                )
                raise FatalFetchError(
                    f"Giving up after {self.run_state.consecutive_failure_count} "
                    f"consecutive failures: {step.error}",
                    attempts=self.run_state.consecutive_failure_count,
                    cause=step.error,
                ) from step.error

            if step.state is LoopState.THROTTLED:
                logger.info(
                    f"OpenSea API rate limited. Retrying in {step.wait_seconds:.2f} seconds."
                )
            elif step.state in (LoopState.FATAL_ERROR, LoopState.MALFORMED_PAGE):
                logger.warning(
                    f"Error fetching OpenSea data x{self.run_state.consecutive_failure_count}. "
                    f"Retrying in {step.wait_seconds:g} seconds. ({step.error})"
                )

            if step.wait_seconds:
                self.sleep(step.wait_seconds)
