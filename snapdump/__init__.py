"""
snapdump - consistent textual database dumps without an external dump binary.

A dump is produced by a single snapshot session:

    connection ──▶ DumpSession ──▶ header
                       │
                       ├──▶ TableDump (DDL, locked data section) ──┐
                       ├──▶ TableDump ...                          ├──▶ sink
                       └──▶ footer ────────────────────────────────┘

Invariants:
    - One read-only, repeatable-read transaction covers every read of a dump
    - Each INSERT statement stays within the configured byte budget unless a
      single row alone exceeds it
    - The first failure aborts the whole dump

How to change safely:
    - Output format changes must stay replayable by the engine's client
    - Compare dumps byte-for-byte before and after encoder changes
"""

from ._version import __version__
from .config import DumpConfig
from .dump import DumpError, DumpReport, DumpSession, Dumper, dump, register

__all__ = [
    "__version__",
    "DumpConfig",
    "DumpError",
    "DumpReport",
    "DumpSession",
    "Dumper",
    "dump",
    "register",
]
