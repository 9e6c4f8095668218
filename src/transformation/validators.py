"""
Data Validators - Transform Layer

Pure functions for checking the reduced daily statistics against the
counters kept by the ingest loop before a report is written.
"""

from typing import Any, Dict, List
import logging

import polars as pl

from .schemas import DAILY_STATS_SCHEMA, DailyStatsRow

logger = logging.getLogger(__name__)


def validate_daily_stats_schema(df: pl.DataFrame) -> bool:
    """
    Validate daily statistics frame matches expected schema

    Args:
        df: Daily statistics DataFrame

    Returns:
        bool: True if valid, raises exception if invalid
    """
    if df.schema != DAILY_STATS_SCHEMA:
        raise ValueError(
            f"Schema mismatch: expected {DAILY_STATS_SCHEMA}, got {df.schema}"
        )

    null_count = df.select(pl.col("date").is_null().sum()).item()
    if null_count > 0:
        raise ValueError(f"Null values found in required field 'date': {null_count}")

    return True


def validate_daily_stats(rows: List[DailyStatsRow], expected_sales: int) -> Dict[str, Any]:
    """
    Validate report rows against the number of successfully parsed events

    Args:
        rows: Reduced daily statistics
        expected_sales: Successful-event counter from the ingest loop

    Returns:
        Dict: Quality metrics

    Raises:
        ValueError: If dates repeat, a row is empty, or sale counts disagree
    """
    dates = [row.date for row in rows]
    duplicate_count = len(dates) - len(set(dates))
    if duplicate_count > 0:
        raise ValueError(f"Duplicate dates found in daily stats: {duplicate_count}")

    empty_rows = [row.date for row in rows if row.num_sales <= 0]
    if empty_rows:
        raise ValueError(f"Daily stats rows without sales: {empty_rows}")

    total_sales = sum(row.num_sales for row in rows)
    if total_sales != expected_sales:
        raise ValueError(
            f"Sale count mismatch: rows hold {total_sales}, ingest counted {expected_sales}"
        )

    malformed_dates = [d for d in dates if len(d) != 10]
    if malformed_dates:
        # kept as-is in the report, the timestamp split is best effort
        logger.warning(f"Found {len(malformed_dates)} dates not in YYYY-MM-DD form")

    logger.info(f"Daily stats validation passed: {len(rows)} days, {total_sales} sales")
    return {
        "total_days": len(rows),
        "total_sales": total_sales,
        "malformed_dates": malformed_dates,
    }
