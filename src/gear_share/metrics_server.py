"""
Prometheus metrics server for Gear Share.

Exposes the exchange metrics at /metrics. When a database is given, the
request and transaction status gauges are refreshed from it periodically.

Usage:
    python -m gear_share.metrics_server --port 9090 --db gear.db
"""

import argparse
import time
from pathlib import Path

from gear_share.kernel.logging import configure_logging, get_logger
from gear_share.kernel.metrics import start_metrics_server

logger = get_logger(__name__)


def main() -> None:
    """Start the Prometheus metrics server."""
    parser = argparse.ArgumentParser(description="Gear Share Metrics Server")
    parser.add_argument(
        "--port",
        type=int,
        default=9090,
        help="Port to listen on (default: 9090)",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Database whose status gauges should be published",
    )
    parser.add_argument(
        "--refresh-seconds",
        type=float,
        default=30.0,
        help="Gauge refresh interval when --db is given (default: 30)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs in JSON format (default: False)",
    )

    args = parser.parse_args()

    configure_logging(json_output=args.json_logs, log_level=args.log_level)

    logger.info(
        "Starting Prometheus metrics server",
        port=args.port,
        endpoint=f"http://0.0.0.0:{args.port}/metrics",
    )
    start_metrics_server(port=args.port)
    logger.info("Metrics server started successfully")

    try:
        while True:
            if args.db is not None and args.db.exists():
                from gear_share.exchange import GearShare

                # Rebuilding publishes the status gauges
                GearShare(args.db)
            time.sleep(args.refresh_seconds if args.db is not None else 1)
    except KeyboardInterrupt:
        logger.info("Shutting down metrics server")


if __name__ == "__main__":
    main()
