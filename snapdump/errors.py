"""
Error types for snapdump.

- DumpError: Base exception
- DumpQueryError: An introspection or data query failed
- DumpConsistencyError: The server described a different table than requested
- DumpSchemaError: A table cannot be dumped as declared
- DumpConfigError: Invalid configuration
- DumpSinkError: The destination rejected a write
- DumpTimeoutError: The dump exceeded its time budget

Invariants:
    - All errors inherit from DumpError
    - Driver exceptions are chained as __cause__, never discarded
"""

from __future__ import annotations

from typing import Any


class DumpError(Exception):
    """Base exception for all dump failures.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "DUMP_ERROR"
        self.details = details or {}


class DumpQueryError(DumpError):
    """An introspection or data query failed."""

    def __init__(self, message: str, statement: str | None = None) -> None:
        super().__init__(message, code="QUERY_ERROR", details={"statement": statement})
        self.statement = statement


class DumpConsistencyError(DumpError):
    """The server answered for a different object than the one requested."""

    def __init__(self, requested: str, returned: str | None) -> None:
        super().__init__(
            f"Returned table {returned!r} is not the same as requested table {requested!r}",
            code="CONSISTENCY_ERROR",
            details={"requested": requested, "returned": returned},
        )
        self.requested = requested
        self.returned = returned


class DumpSchemaError(DumpError):
    """A table's shape cannot be dumped (no columns, width drift, bad values)."""

    def __init__(self, message: str, table: str | None = None) -> None:
        super().__init__(message, code="SCHEMA_ERROR", details={"table": table})
        self.table = table


class DumpConfigError(DumpError, ValueError):
    """Dump configuration is invalid."""

    def __init__(self, message: str, option: str | None = None) -> None:
        super().__init__(message, code="CONFIG_ERROR", details={"option": option})
        self.option = option


class DumpSinkError(DumpError):
    """Writing to the destination failed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="SINK_ERROR")


class DumpTimeoutError(DumpError):
    """The dump did not finish within its time budget."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            f"Dump did not complete within {timeout_seconds}s",
            code="TIMEOUT",
            details={"timeout_seconds": timeout_seconds},
        )
        self.timeout_seconds = timeout_seconds


