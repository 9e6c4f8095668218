"""
Pipeline Orchestrator - Sales Report

One run, one collection:
1. Extract: page through sale events for the query (ingest loop)
2. Transform: reduce the daily aggregate to per-day statistics
3. Load: write the CSV report to the output directory

A cancelled ingest stops before step 2 and writes nothing.
"""

import threading
import time
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from src.coreutils.config import ReportConfig
from src.coreutils.time import split_duration

# Extract layer imports
from src.extract.opensea_api import OpenSeaEventsClient
from src.extract.schemas import QueryParameters

# Transform layer imports
from src.transformation.aggregator import reduce_daily_stats
from src.transformation.validators import validate_daily_stats

# Load layer imports
from src.load.csv_report import default_filename, write_report

from .ingest_loop import IngestLoop
from .progress import ProgressReporter

logger = logging.getLogger(__name__)


@dataclass
class ReportResult:
    output_path: Optional[str]
    rows_written: int
    total_events: int
    request_count: int
    skipped_events: int
    collection_label: str
    elapsed_seconds: float
    cancelled: bool = False


class SalesReportPipeline:
    """Orchestrates fetch → aggregate → report for a single query"""

    def __init__(
        self,
        config: ReportConfig,
        client: Optional[OpenSeaEventsClient] = None,
        sleep: Optional[Callable[[float], Any]] = None,
        cancel_event: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the pipeline

        Args:
            config: Run configuration (credential, endpoint, output dir)
            client: Events client (built from config if not provided)
            sleep: Wait function handed to the ingest loop
            cancel_event: Cancellation flag shared with signal handlers
            clock: Monotonic clock for elapsed time
        """
        self.config = config
        self.client = client or OpenSeaEventsClient(config)
        self.sleep = sleep
        self.cancel_event = cancel_event or threading.Event()
        self.clock = clock

    def run(
        self,
        query: QueryParameters,
        filename: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ReportResult:
        """
        Run the complete report pipeline

        Args:
            query: What to fetch
            filename: Output file name (defaults to "<label>_<timestamp>.csv")
            now: Timestamp used for the default file name

        Returns:
            ReportResult: Where the report went and run statistics

        Raises:
            FatalFetchError: If the events API keeps failing
        """
        logger.info("🚀 Starting Sales Report Pipeline")
        start_time = self.clock()

        loop = IngestLoop(
            self.client.fetch_page, sleep=self.sleep, cancel_event=self.cancel_event
        )
        reporter = ProgressReporter(
            lambda: loop.run_state, self.config.progress_interval, clock=self.clock
        )

        # Step 1: Extract
        with reporter:
            ingest = loop.run(query)

        label = ingest.run_state.collection_label or query.filter_value

        if ingest.cancelled:
            logger.warning("🛑 Run cancelled, no report written")
            return ReportResult(
                output_path=None,
                rows_written=0,
                total_events=ingest.run_state.total_event_count,
                request_count=ingest.run_state.request_count,
                skipped_events=ingest.skipped_events,
                collection_label=label,
                elapsed_seconds=self.clock() - start_time,
                cancelled=True,
            )

        # Step 2: Transform
        logger.info("🔄 Aggregating transaction data...")
        rows = reduce_daily_stats(ingest.aggregate)
        validate_daily_stats(rows, ingest.run_state.total_event_count)

        # Step 3: Load
        output_path = write_report(
            rows, self.config.output_dir, filename or default_filename(label, now)
        )

        elapsed = self.clock() - start_time
        hours, minutes, seconds = split_duration(elapsed)
        logger.info(
            f"✅ Completed in {hours * 60 + minutes}m {seconds}s. "
            f"{len(rows)} data rows written to {output_path}"
        )

        return ReportResult(
            output_path=output_path,
            rows_written=len(rows),
            total_events=ingest.run_state.total_event_count,
            request_count=ingest.run_state.request_count,
            skipped_events=ingest.skipped_events,
            collection_label=label,
            elapsed_seconds=elapsed,
        )
