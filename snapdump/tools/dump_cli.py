"""
Dump CLI tool for snapdump.

This tool writes a consistent dump of one database to a timestamped file:
1. Connect (plus a second connection for table locks when requested)
2. Create <dir>/<strftime(format)>.sql (via a .partial file when atomic)
3. Stream the dump through a snapshot session
4. Close connections and report

Usage:
    snapdump --database <name> --dir <path> [options]

Invariants:
    - An existing dump file is never overwritten
    - With atomic output, a failed dump leaves no .sql file behind
    - The exit code is 0 only when the dump completed

How to change safely:
    - Keep flag defaults sourced from AppConfig.from_env()
    - Add new flags additively
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable

from ..config import AppConfig, parse_table_list
from ..dump import register
from ..dump.base import DbApiConnection
from ..errors import DumpConfigError

logger = logging.getLogger(__name__)


def mysql_connect(**kwargs: Any) -> DbApiConnection:
    """Open a buffered mysql-connector connection.

    Buffered cursors let scans of different tables share the connection, at
    the cost of holding each table's full result set in client memory.
    """
    import mysql.connector

    return mysql.connector.connect(buffered=True, autocommit=False, **kwargs)


@dataclass
class DumpResult:
    """Result of a dump run.

    Attributes:
        success: Whether the dump completed
        path: Dump file written
        tables: Number of tables dumped
        statements: Number of INSERT statements written
        bytes_written: Size of the dump
        duration_ms: Total duration
        warnings: Non-fatal problems reported by the session
        error: Error message if failed
    """

    success: bool
    path: str | None
    tables: int
    statements: int
    bytes_written: int
    duration_ms: int
    warnings: list[str] = field(default_factory=list)
    error: str | None = None


class DumpTool:
    """Runs one dump to a file.

    Example:
        >>> tool = DumpTool(AppConfig.from_env())
        >>> result = tool.run()
        >>> print(f"Wrote {result.bytes_written} bytes to {result.path}")
    """

    def __init__(
        self,
        config: AppConfig,
        connect: Callable[..., DbApiConnection] | None = None,
    ) -> None:
        """Initialize the dump tool.

        Args:
            config: Tool configuration
            connect: Driver connect function, called with ConnectionConfig kwargs
                (defaults to mysql_connect)
        """
        self.config = config
        self.connect = connect or mysql_connect

    def run(self) -> DumpResult:
        """Execute the dump.

        Returns:
            DumpResult indicating success/failure
        """
        return asyncio.run(self.run_async())

    async def run_async(self) -> DumpResult:
        start_time = time.time()
        dumper = None
        connection = None
        lock_connection = None

        try:
            self.config.validate()
            kwargs = self.config.connection.connect_kwargs()
            connection = self.connect(**kwargs)
            if self.config.dump.lock_tables:
                lock_connection = self.connect(**kwargs)

            dumper = register(
                connection,
                self.config.output.directory,
                self.config.output.name_format,
                config=self.config.dump,
                atomic=self.config.output.atomic,
                lock_connection=lock_connection,
            )
            logger.info(f"Starting dump of {self.config.connection.database} to {dumper.path}")

            report = await dumper.dump()

            return DumpResult(
                success=True,
                path=str(dumper.path),
                tables=len(report.tables),
                statements=report.statements,
                bytes_written=report.bytes_written,
                duration_ms=int((time.time() - start_time) * 1000),
                warnings=list(report.warnings),
            )

        except Exception as e:
            logger.error(f"Dump failed: {e}", exc_info=True)
            return DumpResult(
                success=False,
                path=str(dumper.path) if dumper else None,
                tables=0,
                statements=0,
                bytes_written=0,
                duration_ms=int((time.time() - start_time) * 1000),
                error=str(e),
            )

        finally:
            if dumper is not None:
                dumper.close()
            else:
                for conn in (lock_connection, connection):
                    if conn is not None:
                        conn.close()


def report_result(result: DumpResult) -> int:
    """Print a summary and return the process exit code."""
    if result.success:
        print("Dump completed successfully")
        print(f"  File: {result.path}")
        print(f"  Tables: {result.tables}")
        print(f"  Statements: {result.statements}")
        print(f"  Bytes: {result.bytes_written}")
        print(f"  Duration: {result.duration_ms}ms")
        for warning in result.warnings:
            print(f"  Warning: {warning}")
        return 0
    print(f"Dump failed: {result.error}")
    return 1


def build_parser(defaults: AppConfig) -> argparse.ArgumentParser:
    conn = defaults.connection
    dump = defaults.dump
    output = defaults.output

    parser = argparse.ArgumentParser(
        description="Create a consistent SQL dump without the mysqldump binary"
    )
    parser.add_argument("--host", default=conn.host, help="Server host")
    parser.add_argument("--port", type=int, default=conn.port, help="Server port")
    parser.add_argument("--socket", default=conn.unix_socket, help="Unix socket path")
    parser.add_argument("--user", default=conn.user, help="Login user")
    parser.add_argument(
        "--password", default=conn.password, help="Login password (prefer MYSQL_PASSWORD)"
    )
    parser.add_argument("--database", default=conn.database, help="Database to dump")
    parser.add_argument("--dir", default=output.directory, help="Directory for the dump file")
    parser.add_argument(
        "--format", default=output.name_format, help="strftime format for the file name"
    )
    parser.add_argument(
        "--no-atomic", action="store_true", help="Write the .sql file directly"
    )
    parser.add_argument(
        "--ignore-table",
        action="append",
        default=[],
        help="Table to exclude (repeatable)",
    )
    parser.add_argument(
        "--max-statement-bytes",
        type=int,
        default=dump.max_statement_bytes,
        help="Byte budget for one INSERT statement",
    )
    parser.add_argument(
        "--lock-tables", action="store_true", help="READ-lock all tables during the dump"
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=dump.max_concurrent_tables,
        help="Maximum tables in flight (DDL fetches overlap, row scans are sequential)",
    )
    parser.add_argument(
        "--timeout", type=float, default=dump.timeout_seconds, help="Abort after N seconds"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    return parser


def config_from_args(defaults: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Overlay parsed flags on the environment configuration."""
    return AppConfig(
        dump=replace(
            defaults.dump,
            ignore_tables=defaults.dump.ignore_tables | parse_table_list(args.ignore_table),
            max_statement_bytes=args.max_statement_bytes,
            lock_tables=defaults.dump.lock_tables or args.lock_tables,
            max_concurrent_tables=args.concurrency,
            timeout_seconds=args.timeout,
        ),
        connection=replace(
            defaults.connection,
            host=args.host,
            port=args.port,
            unix_socket=args.socket,
            user=args.user,
            password=args.password,
            database=args.database,
        ),
        output=replace(
            defaults.output,
            directory=args.dir,
            name_format=args.format,
            atomic=defaults.output.atomic and not args.no_atomic,
        ),
        observability=replace(
            defaults.observability,
            log_level="DEBUG" if args.verbose else defaults.observability.log_level,
        ),
    )


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the dump tool."""
    from ..main import setup_logging

    try:
        defaults = AppConfig.from_env(validate=False)
        args = build_parser(defaults).parse_args(argv)
        config = config_from_args(defaults, args)
        config.validate()
    except DumpConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    setup_logging(config.observability)
    config.log_config()

    result = DumpTool(config).run()
    sys.exit(report_result(result))


if __name__ == "__main__":
    main()
