"""
Transformation Layer Schemas

Schemas for normalized sales and the per-day statistics built from them.
"""

from dataclasses import dataclass

import polars as pl

# One row per successfully normalized sale event
SALES_SCHEMA = pl.Schema(
    [
        ("date", pl.String()),
        ("price", pl.Float64()),
    ]
)

# One row per calendar date that had at least one sale
DAILY_STATS_SCHEMA = pl.Schema(
    [
        ("date", pl.String()),
        ("volume", pl.Float64()),
        ("floor", pl.Float64()),
        ("num_sales", pl.UInt32()),
    ]
)


@dataclass(frozen=True)
class DailyStatsRow:
    """One report line, built from a DAILY_STATS_SCHEMA row plus the rounded average"""

    date: str
    volume: float
    avg_price: float
    floor: float
    num_sales: int
