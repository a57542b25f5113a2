"""
Configuration management for snapdump.

Configuration comes from environment variables, optionally overridden by CLI
flags. This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local use
    - Validation failures raise DumpConfigError before any connection is opened
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that keep existing dumps byte-identical
    - Document every environment variable next to its field
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Iterable

from .errors import DumpConfigError

logger = logging.getLogger(__name__)

DEFAULT_MAX_STATEMENT_BYTES = 4 * 1024 * 1024  # 4MiB, the engine's default max_allowed_packet


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise DumpConfigError(f"{name} must be an integer, got {raw!r}", option=name)


def parse_table_list(value: str | Iterable[str] | None) -> frozenset[str]:
    """Parse a comma separated (or iterable) list of table names."""
    if value is None:
        return frozenset()
    items = value.split(",") if isinstance(value, str) else value
    return frozenset(item.strip() for item in items if item and item.strip())


@dataclass(frozen=True)
class DumpConfig:
    """Dump engine configuration.

    Attributes:
        ignore_tables: Table names excluded from the dump (exact match)
        max_statement_bytes: Byte budget for one INSERT statement
        lock_tables: Take a READ lock on every dumped table for the whole dump
        max_concurrent_tables: Maximum tables rendered at once
        fetch_size: Rows fetched from the cursor per round trip
        timeout_seconds: Abort the dump after this many seconds (None = no limit)
    """

    ignore_tables: frozenset[str] = frozenset()
    max_statement_bytes: int = DEFAULT_MAX_STATEMENT_BYTES
    lock_tables: bool = False
    max_concurrent_tables: int = 4
    fetch_size: int = 1000
    timeout_seconds: float | None = None

    @classmethod
    def from_env(cls) -> DumpConfig:
        """Load configuration from environment variables."""
        timeout = os.getenv("DUMP_TIMEOUT_SECONDS")
        try:
            timeout_seconds = float(timeout) if timeout else None
        except ValueError:
            raise DumpConfigError(
                f"DUMP_TIMEOUT_SECONDS must be a number, got {timeout!r}",
                option="DUMP_TIMEOUT_SECONDS",
            )
        return cls(
            ignore_tables=parse_table_list(os.getenv("DUMP_IGNORE_TABLES")),
            max_statement_bytes=_env_int("DUMP_MAX_STATEMENT_BYTES", DEFAULT_MAX_STATEMENT_BYTES),
            lock_tables=_env_bool("DUMP_LOCK_TABLES", "false"),
            max_concurrent_tables=_env_int("DUMP_MAX_CONCURRENT_TABLES", 4),
            fetch_size=_env_int("DUMP_FETCH_SIZE", 1000),
            timeout_seconds=timeout_seconds,
        )

    def validate(self) -> None:
        """Validate dump settings.

        Raises:
            DumpConfigError: If a setting is out of range.
        """
        if self.max_statement_bytes <= 0:
            raise DumpConfigError(
                f"max_statement_bytes must be > 0, got {self.max_statement_bytes}",
                option="max_statement_bytes",
            )
        if self.max_concurrent_tables < 1:
            raise DumpConfigError(
                f"max_concurrent_tables must be >= 1, got {self.max_concurrent_tables}",
                option="max_concurrent_tables",
            )
        if self.fetch_size < 1:
            raise DumpConfigError(
                f"fetch_size must be >= 1, got {self.fetch_size}", option="fetch_size"
            )
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise DumpConfigError(
                f"timeout_seconds must be > 0, got {self.timeout_seconds}",
                option="timeout_seconds",
            )


@dataclass(frozen=True)
class ConnectionConfig:
    """Database connection settings.

    Attributes:
        host: Server host
        port: Server port
        user: Login user
        password: Login password (never logged)
        database: Schema to dump
        unix_socket: Unix socket path, used instead of host/port when set
    """

    host: str = "localhost"
    port: int = 3306
    user: str = "root"
    password: str | None = None
    database: str = ""
    unix_socket: str | None = None

    @classmethod
    def from_env(cls) -> ConnectionConfig:
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("MYSQL_HOST", "localhost"),
            port=_env_int("MYSQL_PORT", 3306),
            user=os.getenv("MYSQL_USER", "root"),
            password=os.getenv("MYSQL_PASSWORD"),
            database=os.getenv("MYSQL_DATABASE", ""),
            unix_socket=os.getenv("MYSQL_UNIX_SOCKET"),
        )

    def connect_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for the driver's connect()."""
        kwargs: dict[str, Any] = {"user": self.user, "database": self.database}
        if self.password is not None:
            kwargs["password"] = self.password
        if self.unix_socket:
            kwargs["unix_socket"] = self.unix_socket
        else:
            kwargs["host"] = self.host
            kwargs["port"] = self.port
        return kwargs


@dataclass(frozen=True)
class OutputConfig:
    """Dump file placement.

    Attributes:
        directory: Directory the dump file is created in
        name_format: strftime format for the file name (``.sql`` is appended)
        atomic: Write to a partial file and rename on success
    """

    directory: str = "dumps"
    name_format: str = "%Y%m%d-%H%M%S"
    atomic: bool = True

    @classmethod
    def from_env(cls) -> OutputConfig:
        """Load configuration from environment variables."""
        return cls(
            directory=os.getenv("DUMP_DIR", "dumps"),
            name_format=os.getenv("DUMP_NAME_FORMAT", "%Y%m%d-%H%M%S"),
            atomic=_env_bool("DUMP_ATOMIC", "true"),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass
class AppConfig:
    """Complete tool configuration.

    Attributes:
        dump: Dump engine configuration
        connection: Database connection configuration
        output: Dump file configuration
        observability: Logging configuration
    """

    dump: DumpConfig = field(default_factory=DumpConfig)
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls, validate: bool = True) -> AppConfig:
        """Load complete configuration from environment variables.

        Args:
            validate: Validate the loaded configuration; pass False when
                later overrides (CLI flags) may still fill in missing values.

        Raises:
            DumpConfigError: If a setting is missing or invalid.
        """
        config = cls(
            dump=DumpConfig.from_env(),
            connection=ConnectionConfig.from_env(),
            output=OutputConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        if validate:
            config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            DumpConfigError: If configuration is invalid.
        """
        self.dump.validate()
        if not self.connection.database:
            raise DumpConfigError("MYSQL_DATABASE is required", option="database")
        if self.observability.log_format not in ("json", "text"):
            raise DumpConfigError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text",
                option="log_format",
            )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Dump configuration loaded",
            extra={
                "database": self.connection.database,
                "host": self.connection.unix_socket or self.connection.host,
                "ignore_tables": sorted(self.dump.ignore_tables),
                "max_statement_bytes": self.dump.max_statement_bytes,
                "lock_tables": self.dump.lock_tables,
                "max_concurrent_tables": self.dump.max_concurrent_tables,
                "output_dir": self.output.directory,
                "log_level": self.observability.log_level,
            },
        )
