import math
from datetime import datetime
from typing import Optional, Tuple

ONE_DAY_SECONDS = 86400


def since_epoch_seconds(days: float, now: Optional[datetime] = None) -> int:
    """Unix timestamp (seconds) of `now` minus a lookback window of `days`."""
    now = now or datetime.now()
    return math.floor(now.timestamp() - days * ONE_DAY_SECONDS)


def split_duration(elapsed_seconds: float) -> Tuple[int, int, int]:
    """Split elapsed seconds into (hours, minutes, seconds)."""
    total = int(elapsed_seconds)
    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)
    return hours, minutes, seconds


def report_timestamp(now: datetime) -> str:
    """Filename-safe local timestamp, e.g. 1-15-2023_09-05."""
    return f"{now.month}-{now.day}-{now.year}_{now.strftime('%H-%M')}"
