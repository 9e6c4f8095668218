"""
Main Entry Point - OpenSea Sales Report

Fetches every sale of one collection (or contract) from the OpenSea events
API and writes per-day volume, average price, floor and sale count to CSV.

Exit codes: 0 on success, 1 on configuration errors or when the API keeps
failing, 130 when interrupted (no report is written).
"""

import argparse
import logging
import os
import signal
import sys
import threading
from typing import List, Optional

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.coreutils.config import load_config
from src.coreutils.env import env_get
from src.coreutils.errors import ConfigurationError, FatalFetchError
from src.coreutils.logging import setup_logging
from src.extract.query_builder import build_query
from src.orchestration.pipeline import SalesReportPipeline

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Daily sales report for an OpenSea collection or contract"
    )
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--slug", help="Collection slug (env: SLUG)")
    target.add_argument("--contract", help="Asset contract address (env: CONTRACT)")
    parser.add_argument(
        "--days", type=float, help="Only include sales from the last N days (env: DAYS_BACK)"
    )
    parser.add_argument(
        "--filename", help="Output CSV file name (env: OUTPUT_FILENAME)"
    )
    parser.add_argument(
        "--output-dir", help="Directory for the report (env: OUTPUT_DIR, default: output)"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )
    return parser


def install_signal_handlers(cancel_event: threading.Event) -> None:
    """SIGINT/SIGTERM request a cooperative stop of the ingest loop"""

    def request_stop(signum, frame):
        logger.warning(f"🛑 Received signal {signum}, stopping after the current request")
        cancel_event.set()

    signal.signal(signal.SIGINT, request_stop)
    signal.signal(signal.SIGTERM, request_stop)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    # flags win over environment fallbacks; a flag for one filter disables the other's env value
    slug = args.slug or (None if args.contract else env_get("SLUG"))
    contract = args.contract or (None if args.slug else env_get("CONTRACT"))
    days = args.days if args.days is not None else env_get("DAYS_BACK")
    filename = args.filename or env_get("OUTPUT_FILENAME")

    try:
        query = build_query(slug=slug, contract=contract, days=days)
        config = load_config(output_dir=args.output_dir)
    except ConfigurationError as e:
        logger.error(f"❌ {e}")
        return EXIT_FAILURE

    cancel_event = threading.Event()
    install_signal_handlers(cancel_event)

    pipeline = SalesReportPipeline(config, cancel_event=cancel_event)

    try:
        result = pipeline.run(query, filename=filename)
    except FatalFetchError as e:
        logger.error("❌ An unexpected error occurred requesting OpenSea data.")
        logger.error(f"   Cause: {e.cause or e}")
        return EXIT_FAILURE

    if result.cancelled:
        return EXIT_CANCELLED

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
