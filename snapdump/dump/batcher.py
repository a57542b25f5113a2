"""
INSERT statement batching under a byte budget.

Rows are appended to one in-progress INSERT until the next row would push the
statement (prefix, separators and closing ``;`` included) past the budget.
A row that alone exceeds the budget is emitted in its own statement rather
than dropped.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Sequence

from .base import Column
from .encoder import byte_length, encode_row


class InsertBatch:
    """Accumulates rows for a single INSERT statement."""

    def __init__(self, prefix: str) -> None:
        self.prefix = prefix
        self.prefix_size = byte_length(prefix)
        self.rows: list[str] = []
        self.size = 0

    def __bool__(self) -> bool:
        return bool(self.rows)

    def fits(self, row_size: int, max_bytes: int) -> bool:
        """Whether a row of ``row_size`` bytes can join without exceeding the budget."""
        if not self.rows:
            return True
        return self.size + 1 + row_size + 1 <= max_bytes

    def add(self, row: str, row_size: int) -> None:
        if self.rows:
            self.size += 1
        else:
            self.size = self.prefix_size
        self.rows.append(row)
        self.size += row_size

    def close(self) -> str:
        """Return the finished statement and reset the batch."""
        statement = self.prefix + ",".join(self.rows) + ";"
        self.rows = []
        self.size = 0
        return statement


def insert_prefix(table: str, plan: Sequence[Column]) -> str:
    """``INSERT INTO `t` (`a`, `b`) VALUES `` for an already quoted table name."""
    columns = ", ".join(column.quoted for column in plan)
    return f"INSERT INTO {table} ({columns}) VALUES "


async def batch_inserts(
    table: str,
    plan: Sequence[Column],
    rows: AsyncIterator[Sequence[Any]],
    max_bytes: int,
) -> AsyncIterator[str]:
    """Turn a row stream into bounded INSERT statements.

    Args:
        table: Quoted table name
        plan: Column plan matching the row width
        rows: Async iterator of raw rows
        max_bytes: Statement budget in bytes

    Yields:
        Complete INSERT statements terminated by ``;``

    An error raised by ``rows`` propagates unchanged and the partial batch is
    discarded. Zero rows yield zero statements.
    """
    batch = InsertBatch(insert_prefix(table, plan))

    async for values in rows:
        encoded = encode_row(values, plan)
        size = byte_length(encoded)
        if not batch.fits(size, max_bytes):
            yield batch.close()
        batch.add(encoded, size)

    if batch:
        yield batch.close()
