"""
Progress Reporter - Orchestration Layer

Side timer that periodically logs how the ingest is going. It only reads
the loop's RunState snapshot and must be stopped before the report is
written.
"""

import threading
import time
import logging
from typing import Callable, Optional

from src.coreutils.time import split_duration
from .ingest_loop import RunState

logger = logging.getLogger(__name__)

DOTS = "▏▎▍▋▊▉"


class ProgressReporter:
    """Logs elapsed time, downloaded sales and rate every `interval` seconds"""

    def __init__(
        self,
        snapshot: Callable[[], RunState],
        interval: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.snapshot = snapshot
        self.interval = interval
        self.clock = clock
        self.started_at = clock()
        self._ticks = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def render(self) -> str:
        state = self.snapshot()
        elapsed = self.clock() - self.started_at
        hours, minutes, seconds = split_duration(elapsed)
        full_minutes = elapsed / 60
        rate = round(state.total_event_count / full_minutes) if full_minutes > 0 else 0

        self._ticks += 1
        dot = DOTS[self._ticks % len(DOTS)]
        label = state.collection_label or ""
        return (
            f"{dot} Fetching {label} data | {hours * 60 + minutes:02d}:{seconds:02d} | "
            f"{state.total_event_count} tx downloaded at {rate}/min"
        )

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            logger.info(self.render())

    def start(self) -> "ProgressReporter":
        self.started_at = self.clock()
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="progress-reporter", daemon=True
        )
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def __enter__(self) -> "ProgressReporter":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
