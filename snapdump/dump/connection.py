"""
Async access to a blocking PEP 249 connection.

Every driver call runs on a single-thread executor owned by the wrapper, so
statements issued by concurrent render tasks reach the connection one at a
time and in submission order. Cursors must be buffered for scans of
different tables to interleave.

Invariants:
    - At most one driver call is in flight per wrapped connection
    - Driver exceptions surface as DumpQueryError with the cause chained
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Sequence, TypeVar

from .base import DbApiConnection, DbApiCursor, DumpQueryError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SnapshotConnection:
    """Serialized async facade over a DB-API connection.

    Example:
        >>> conn = SnapshotConnection(mysql_connection)
        >>> version = await conn.query_one("SELECT version()")
        >>> conn.shutdown()
    """

    def __init__(self, connection: DbApiConnection, name: str = "db") -> None:
        self.connection = connection
        self.name = name
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"snapdump-{name}")
        self._submitted: set[Future] = set()

    @property
    def busy(self) -> bool:
        """Whether a driver call is still queued or running on the executor.

        Stays true after the awaiting task was cancelled, until the blocking
        call itself returns.
        """
        return any(not future.done() for future in list(self._submitted))

    async def _call(self, statement: str | None, fn: Callable[..., T], *args: Any) -> T:
        future = self._executor.submit(fn, *args)
        self._submitted.add(future)
        future.add_done_callback(self._submitted.discard)
        try:
            return await asyncio.wrap_future(future)
        except DumpQueryError:
            raise
        except Exception as e:
            raise DumpQueryError(f"{statement or fn.__name__} failed: {e}", statement) from e

    def _run(self, statement: str, fetch: str | None) -> Any:
        cursor = self.connection.cursor()
        try:
            cursor.execute(statement)
            if fetch == "one":
                return cursor.fetchone()
            if fetch == "all":
                return cursor.fetchall()
            return None
        finally:
            cursor.close()

    async def execute(self, statement: str) -> None:
        """Run a statement and discard any result."""
        logger.debug("execute", extra={"connection": self.name, "statement": statement})
        await self._call(statement, self._run, statement, None)

    async def query_one(self, statement: str) -> Sequence[Any] | None:
        """Run a query and return its first row."""
        logger.debug("query", extra={"connection": self.name, "statement": statement})
        return await self._call(statement, self._run, statement, "one")

    async def query_all(self, statement: str) -> Sequence[Sequence[Any]]:
        """Run a query and return all rows."""
        logger.debug("query", extra={"connection": self.name, "statement": statement})
        return list(await self._call(statement, self._run, statement, "all"))

    async def open_cursor(self, statement: str) -> RowCursor:
        """Execute a query and return a cursor for incremental reads."""
        logger.debug("open cursor", extra={"connection": self.name, "statement": statement})

        def _open() -> DbApiCursor:
            cursor = self.connection.cursor()
            try:
                cursor.execute(statement)
            except Exception:
                cursor.close()
                raise
            return cursor

        cursor = await self._call(statement, _open)
        return RowCursor(self, cursor, statement)

    async def rollback(self) -> None:
        await self._call("ROLLBACK", self.connection.rollback)

    def shutdown(self) -> None:
        """Release the executor thread. The driver connection stays open."""
        self._executor.shutdown(wait=False)


class RowCursor:
    """Incremental reader over an open result set."""

    def __init__(self, owner: SnapshotConnection, cursor: DbApiCursor, statement: str) -> None:
        self._owner = owner
        self._cursor = cursor
        self.statement = statement
        self.closed = False

    async def fetchmany(self, size: int) -> Sequence[Sequence[Any]]:
        return await self._owner._call(self.statement, self._cursor.fetchmany, size)

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._owner.busy:
            # Queued behind the in-flight call; a cancelled scan does not wait for it
            future = self._owner._executor.submit(self._cursor.close)
            future.add_done_callback(self._log_close_failure)
            return
        await self._owner._call(self.statement, self._cursor.close)

    def _log_close_failure(self, future: Future) -> None:
        if not future.cancelled() and future.exception() is not None:
            logger.warning(
                f"Failed to close cursor: {future.exception()}",
                extra={"connection": self._owner.name, "statement": self.statement},
            )
