#!/usr/bin/env python3
"""Main entry point for the json2prom exporter"""
import argparse
import sys
from typing import List, Optional

import uvicorn

from config import Config, load_targets, validate_settings
from app.server import MetricsServer
from logging_config import setup_structured_logging, get_logger, log_server_startup, log_error


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Command line overrides for the environment settings"""
    parser = argparse.ArgumentParser(description="Poll HTTP endpoints and export jq-extracted values as Prometheus gauges")
    parser.add_argument("-c", "--config", dest="config_file", help="Path to the YAML target file")
    parser.add_argument("--host", dest="metrics_host", help="Listen host for the metrics endpoint")
    parser.add_argument("--port", dest="metrics_port", type=int, help="Listen port for the metrics endpoint")
    parser.add_argument("--log-level", dest="log_level", help="Log level (DEBUG, INFO, WARNING, ERROR)")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None):
    """Main application entry point"""
    args = parse_args(argv)
    overrides = {key: value for key, value in vars(args).items() if value is not None}

    try:
        # Load configuration
        config = Config(**overrides)

        # Setup structured logging
        setup_structured_logging(config)
        logger = get_logger(__name__)

        targets = load_targets(config.config_file)
        validate_settings(config, targets)

        # Log startup
        log_server_startup(logger, config, targets_count=len(targets))

        # Create server; registers every gauge before serving
        server = MetricsServer(config, targets)
        app = server.get_app()

    except Exception as e:
        logger = get_logger(__name__)
        log_error(logger, e, {"component": "main", "phase": "startup"})
        print(f"json2prom: startup failed: {e}", file=sys.stderr)
        sys.exit(1)

    # Run server
    uvicorn.run(
        app,
        host=config.metrics_host,
        port=config.metrics_port,
        log_config=None  # We handle logging ourselves
    )


if __name__ == '__main__':
    main()
