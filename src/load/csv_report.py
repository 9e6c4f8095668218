"""
CSV Report - Load Layer

Renders daily statistics as CSV text and writes it to the output directory.
"""

import os
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional
import logging

from src.coreutils.time import report_timestamp
from src.transformation.schemas import DailyStatsRow

logger = logging.getLogger(__name__)

CSV_HEADER = 'Date,Volume,"Avg Price",Floor,"Num Sales"'


def format_number(value: float) -> str:
    """
    Shortest round-trip text for a report number

    Integral values print without a fractional part (3.0 -> "3"). Exponents
    carry no leading zeros (1e-07 -> "1e-7"), and values down to 1e-6 are
    written out in full (1e-05 -> "0.00001").
    """
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))

    text = repr(value)
    if "e" not in text:
        return text

    mantissa, exponent = text.split("e")
    power = int(exponent)
    if -7 < power < 0:
        return format(Decimal(text), "f")
    return f"{mantissa}e{'-' if power < 0 else '+'}{abs(power)}"


def format_row(row: DailyStatsRow) -> str:
    return ",".join(
        [
            row.date,
            format_number(row.volume),
            format_number(row.avg_price),
            format_number(row.floor),
            str(row.num_sales),
        ]
    )


def render_csv(rows: Iterable[DailyStatsRow]) -> str:
    """
    Render report rows as CSV text

    Args:
        rows: Daily statistics rows

    Returns:
        str: Header line plus one line per row, each newline-terminated
    """
    lines: List[str] = [CSV_HEADER]
    lines.extend(format_row(row) for row in rows)
    return "\n".join(lines) + "\n"


def slugify_label(label: str) -> str:
    return label.lower().replace(" ", "-")


def default_filename(label: str, now: Optional[datetime] = None) -> str:
    """e.g. "Bored Ape Yacht Club" -> bored-ape-yacht-club_1-15-2023_09-05.csv"""
    now = now or datetime.now()
    return f"{slugify_label(label)}_{report_timestamp(now)}.csv"


def ensure_csv_suffix(filename: str) -> str:
    return filename if filename.endswith(".csv") else f"{filename}.csv"


def write_report(rows: List[DailyStatsRow], output_dir: str, filename: str) -> str:
    """
    Write report rows to a CSV file

    Args:
        rows: Daily statistics rows
        output_dir: Directory to write into (created if missing)
        filename: Target file name, ".csv" is appended if missing

    Returns:
        str: Path to saved file
    """
    filepath = os.path.join(output_dir, ensure_csv_suffix(filename))
    logger.info(f"Saving report to CSV: {filepath}")

    # Ensure directory exists
    os.makedirs(output_dir, exist_ok=True)

    with open(filepath, "w", newline="") as f:
        f.write(render_csv(rows))

    logger.info(f"Saved {len(rows)} data rows to {filepath}")
    return filepath
