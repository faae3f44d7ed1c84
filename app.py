#!/usr/bin/env python3
"""
Source Aggregation Service - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
Builds the configuration, sets up logging, wires every
component into one AppContext and serves the HTTP API with
uvicorn. The anomaly monitor runs for the lifetime of the
server.

============================================================
USAGE
============================================================
Direct execution:
    python app.py --port 8000

With a config file:
    python app.py --config config.yaml --log-format json

Environment-based configuration (also read from .env):
    AGGREGATOR_NEWS_API_KEY=... AGGREGATOR_REQUIRE_ALL_SOURCES=false python app.py

============================================================
"""

import argparse
import sys
from typing import List, Optional

import uvicorn

from core.config import AppConfig
from core.context import build_context
from core.logging_setup import setup_logging
from web_api.main import create_app


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="source-aggregator",
        description="Multi-source aggregation and performance monitoring service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                  # Serve with env/.env configuration
  %(prog)s --config config.yaml             # Serve with a YAML config file
  %(prog)s --port 9000 --log-level DEBUG    # Override server and logging options
        """
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        metavar="PATH",
        help="YAML config file (default: environment variables)",
    )

    # --------------------------------------------------------
    # Server Options
    # --------------------------------------------------------
    server_group = parser.add_argument_group("Server Options")

    server_group.add_argument(
        "--host",
        type=str,
        help="Bind address (overrides config)",
    )

    server_group.add_argument(
        "--port",
        type=int,
        help="Bind port (overrides config)",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (overrides config)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        help="Logging format (overrides config)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version="%(prog)s 1.0.0",
    )

    return parser


def build_config(args: argparse.Namespace) -> AppConfig:
    """Load the configuration and apply command-line overrides."""
    config = AppConfig.from_yaml(args.config) if args.config else AppConfig.from_env()

    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    if args.log_level:
        config.log_level = args.log_level
    if args.log_format:
        config.log_format = args.log_format

    config.__post_init__()
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logger = setup_logging(config.log_level, config.log_format)
    logger.info(f"Configuration: {config.to_dict()}")

    app = create_app(build_context(config))

    try:
        uvicorn.run(
            app,
            host=config.host,
            port=config.port,
            log_level=config.log_level.lower(),
            log_config=None,
        )
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130

    return 0


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
