"""
snapdump - environment driven entry point.

Runs one dump configured entirely through environment variables, for use in
containers and scheduled jobs. See config.py for all available settings and
tools/dump_cli.py for the flag driven equivalent.

Usage:
    MYSQL_DATABASE=app DUMP_DIR=/backups python -m snapdump.main
"""

from __future__ import annotations

import logging
import sys

from .config import AppConfig, ObservabilityConfig
from .errors import DumpConfigError

logger = logging.getLogger(__name__)


def setup_logging(config: ObservabilityConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Observability configuration
    """
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    if config.log_format == "json":
        import json_log_formatter

        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from the driver
    logging.getLogger("mysql.connector").setLevel(logging.WARNING)


def main() -> None:
    """Main entry point."""
    try:
        config = AppConfig.from_env()
    except DumpConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.observability)
    config.log_config()

    from .tools.dump_cli import DumpTool, report_result

    result = DumpTool(config).run()
    sys.exit(report_result(result))


if __name__ == "__main__":
    main()
