"""
Snapshot dump engine.

This module turns one database connection into a textual dump:
- Value encoding to SQL literals
- INSERT batching under a byte budget
- Per-table DDL + data sections
- A session holding one consistent read transaction for the whole dump

Invariants:
    - All reads of one dump observe the same snapshot
    - Table sections never interleave on the sink
    - Nothing is committed; the snapshot transaction is always rolled back
"""

from .base import (
    Column,
    ColumnCategory,
    DumpConfigError,
    DumpConsistencyError,
    DumpError,
    DumpQueryError,
    DumpReport,
    DumpSchemaError,
    DumpSinkError,
    DumpTimeoutError,
    ReportMetadata,
)
from .dumper import Dumper, dump, register
from .session import DumpSession

__all__ = [
    # Entry points
    "DumpSession",
    "Dumper",
    "dump",
    "register",
    # Types
    "Column",
    "ColumnCategory",
    "DumpReport",
    "ReportMetadata",
    # Errors
    "DumpError",
    "DumpQueryError",
    "DumpConsistencyError",
    "DumpSchemaError",
    "DumpConfigError",
    "DumpSinkError",
    "DumpTimeoutError",
]
