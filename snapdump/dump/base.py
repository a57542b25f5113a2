"""
Base types and errors for the dump engine.

This module defines the error taxonomy, the column value categories used to
select encoding rules, and the minimal PEP 249 surface the engine expects
from a database driver.

Invariants:
    - Every failure raised by the engine is a DumpError subclass
    - A ColumnCategory is decided once per column, never per row
    - Drivers are only touched through the DbApiConnection protocol

How to change safely:
    - New categories must be handled by encode_value before they are produced
    - Add new error types as DumpError subclasses with their own code
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, Sequence

from ..errors import (
    DumpConfigError,
    DumpConsistencyError,
    DumpError,
    DumpQueryError,
    DumpSchemaError,
    DumpSinkError,
    DumpTimeoutError,
)

__all__ = [
    "DumpError",
    "DumpQueryError",
    "DumpConsistencyError",
    "DumpSchemaError",
    "DumpConfigError",
    "DumpSinkError",
    "DumpTimeoutError",
    "ColumnCategory",
    "Column",
    "ReportMetadata",
    "DumpReport",
    "category_for_type",
    "quote_identifier",
]


class ColumnCategory(Enum):
    """Encoding rule selected for a column."""

    INTEGER = "integer"
    BINARY = "binary"
    TEXT = "text"
    OTHER = "other"


_INTEGER_TYPES = frozenset({"tinyint", "smallint", "mediumint", "int", "integer", "bigint"})
_BINARY_TYPES = frozenset(
    {"tinyblob", "blob", "mediumblob", "longblob", "binary", "varbinary", "bit"}
)
_TEXT_TYPES = frozenset(
    {
        "char",
        "varchar",
        "tinytext",
        "text",
        "mediumtext",
        "longtext",
        "enum",
        "set",
        "json",
    }
)
_TYPE_NAME = re.compile(r"\s*([a-z]+)")


def category_for_type(declared_type: str) -> ColumnCategory:
    """Map a declared SQL column type such as ``int(11) unsigned`` to its category."""
    match = _TYPE_NAME.match(declared_type.lower())
    base = match.group(1) if match else ""
    if base in _INTEGER_TYPES:
        return ColumnCategory.INTEGER
    if base in _BINARY_TYPES:
        return ColumnCategory.BINARY
    if base in _TEXT_TYPES:
        return ColumnCategory.TEXT
    return ColumnCategory.OTHER


def quote_identifier(name: str) -> str:
    """Wrap an identifier in backticks, doubling any embedded backtick."""
    return "`" + name.replace("`", "``") + "`"


@dataclass(frozen=True)
class Column:
    """One entry of a table's column plan.

    Attributes:
        name: Column name as reported by the server
        category: Encoding rule for the column's values
    """

    name: str
    category: ColumnCategory

    @property
    def quoted(self) -> str:
        return quote_identifier(self.name)


@dataclass
class ReportMetadata:
    """Values substituted into the report header and footer."""

    dump_version: str
    server_version: str = ""
    complete_time: str = ""


@dataclass
class DumpReport:
    """Outcome of one dump session.

    Attributes:
        tables: Tables written, in write order
        ignored_tables: Tables skipped because of the ignore set
        statements: Number of INSERT statements written
        bytes_written: Total bytes written to the sink
        duration_ms: Wall-clock duration of the session
        warnings: Non-fatal teardown problems
    """

    tables: list[str] = field(default_factory=list)
    ignored_tables: list[str] = field(default_factory=list)
    statements: int = 0
    bytes_written: int = 0
    duration_ms: int = 0
    warnings: list[str] = field(default_factory=list)


class DbApiCursor(Protocol):
    """Subset of a PEP 249 cursor used by the engine."""

    description: Sequence[Sequence[Any]] | None

    def execute(self, operation: str) -> Any: ...

    def fetchone(self) -> Sequence[Any] | None: ...

    def fetchmany(self, size: int) -> Sequence[Sequence[Any]]: ...

    def fetchall(self) -> Sequence[Sequence[Any]]: ...

    def close(self) -> Any: ...


class DbApiConnection(Protocol):
    """Subset of a PEP 249 connection used by the engine."""

    def cursor(self) -> DbApiCursor: ...

    def rollback(self) -> Any: ...

    def close(self) -> Any: ...
