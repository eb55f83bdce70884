"""
groupstore - Main entry point.

This module wires configuration and logging in front of the command-line
tools. Library users build an AppContext directly instead.

Usage:
    groupstore info
    python -m groupstore.main recent --limit 5

Configuration is entirely via environment variables.
See config.py for all available settings.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, Sequence

import json_log_formatter

from .config import AppConfig
from .tools.store_cli import run

logger = logging.getLogger(__name__)


def setup_logging(config: AppConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Application configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point."""
    try:
        config = AppConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    config.log_config()

    sys.exit(run(argv, config))


if __name__ == "__main__":
    main()
