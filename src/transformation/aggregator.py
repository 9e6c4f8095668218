"""
Daily Aggregator - Transform Layer

Collects normalized sale prices per calendar date and reduces them to
per-day volume, average, floor and sale count.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterator, List, Tuple
import logging

import polars as pl

from .normalizer import NormalizedSale
from .schemas import DAILY_STATS_SCHEMA, SALES_SCHEMA, DailyStatsRow
from .validators import validate_daily_stats_schema

logger = logging.getLogger(__name__)


class DailyAggregate:
    """Mapping of ISO date -> prices, in first-seen date order"""

    def __init__(self):
        self._buckets: Dict[str, List[float]] = {}

    def add(self, sale: NormalizedSale) -> None:
        self._buckets.setdefault(sale.date, []).append(sale.price)

    def items(self) -> Iterator[Tuple[str, List[float]]]:
        for date, prices in self._buckets.items():
            yield date, list(prices)

    @property
    def total_sales(self) -> int:
        return sum(len(prices) for prices in self._buckets.values())

    def __len__(self) -> int:
        return len(self._buckets)

    def to_frame(self) -> pl.DataFrame:
        """Flatten into one row per sale with SALES_SCHEMA"""
        dates: List[str] = []
        prices: List[float] = []
        for date, bucket in self._buckets.items():
            dates.extend([date] * len(bucket))
            prices.extend(bucket)
        return pl.DataFrame({"date": dates, "price": prices}, schema=SALES_SCHEMA)


def round_half_up(value: float, places: int = 2) -> float:
    """Round to `places` decimals, ties away from zero (1.005 -> 1.01)"""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def daily_stats_frame(aggregate: DailyAggregate) -> pl.DataFrame:
    """
    Group sales by date

    Args:
        aggregate: Daily aggregate built by the ingest loop

    Returns:
        pl.DataFrame: DAILY_STATS_SCHEMA frame, dates in first-seen order
    """
    sales_df = aggregate.to_frame()

    stats_df = sales_df.group_by("date", maintain_order=True).agg(
        pl.col("price").sum().alias("volume"),
        pl.col("price").min().alias("floor"),
        pl.len().alias("num_sales"),
    )

    if stats_df.schema != DAILY_STATS_SCHEMA:
        stats_df = stats_df.cast(dict(DAILY_STATS_SCHEMA))

    return stats_df


def reduce_daily_stats(aggregate: DailyAggregate) -> List[DailyStatsRow]:
    """
    Reduce the daily aggregate into report rows

    Every date in the aggregate appears exactly once; dates without sales
    are never synthesized. Row order is the order dates were first seen.

    Args:
        aggregate: Daily aggregate built by the ingest loop

    Returns:
        List[DailyStatsRow]: One row per date

    Raises:
        ValueError: If the grouped frame does not match DAILY_STATS_SCHEMA
    """
    logger.info(f"Aggregating {aggregate.total_sales} sales over {len(aggregate)} days")

    stats_df = daily_stats_frame(aggregate)
    validate_daily_stats_schema(stats_df)

    rows = []
    for record in stats_df.iter_rows(named=True):
        num_sales = int(record["num_sales"])
        volume = float(record["volume"])
        rows.append(
            DailyStatsRow(
                date=record["date"],
                volume=volume,
                avg_price=round_half_up(volume / num_sales),
                floor=float(record["floor"]),
                num_sales=num_sales,
            )
        )
    return rows
