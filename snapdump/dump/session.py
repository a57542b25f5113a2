"""
Snapshot dump session.

The DumpSession owns one read-only, repeatable-read transaction for the whole
dump, so every schema and data read observes the same point in time. It:
1. Opens the snapshot transaction
2. Reads the server version and writes the report header
3. Enumerates tables, dropping ignored and null names
4. Optionally READ-locks all surviving tables
5. Renders tables (DDL fetched for up to max_concurrent_tables at once,
   rows scanned one table at a time under the write lock)
6. Writes the footer, releases the lock and rolls the transaction back

Invariants:
    - The transaction is never committed; it is rolled back, or ends with the
      connection when a cancelled dump left a driver call blocking
    - One table's section is written contiguously (write lock per section)
    - DDL is verified before the write lock is taken
    - The first table failure cancels the remaining renders and is raised
    - Unlock and rollback failures are warnings, never the raised error

How to change safely:
    - Keep every driver call on the SnapshotConnection executor
    - Never write to the sink outside the write lock
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import IO, Callable

from .._version import __version__
from ..config import DumpConfig
from .base import (
    DbApiConnection,
    DumpReport,
    DumpSinkError,
    DumpTimeoutError,
    ReportMetadata,
    quote_identifier,
)
from .connection import SnapshotConnection
from .encoder import to_bytes
from .report import completion_stamp, render_footer, render_header
from .table import TableDump

logger = logging.getLogger(__name__)

BEGIN_STATEMENTS = (
    "SET TRANSACTION ISOLATION LEVEL REPEATABLE READ",
    "START TRANSACTION WITH CONSISTENT SNAPSHOT, READ ONLY",
)


class DumpSession:
    """Dumps one database connection to one byte sink.

    Up to ``max_concurrent_tables`` render tasks run at once, but a task reads
    its rows only while holding the write lock. Concurrency therefore overlaps
    DDL and column fetches with another table's scan; row scans themselves
    are sequential. On cancellation (including ``timeout_seconds``) teardown
    skips UNLOCK and ROLLBACK on a connection still blocked in a driver call
    and records a warning; closing the connection ends both.

    Attributes:
        connection: DB-API connection the snapshot transaction runs on
        out: Binary sink (anything with ``write(bytes)``)
        config: Dump configuration
        lock_connection: Connection used for LOCK/UNLOCK TABLES (defaults to
            ``connection``); a separate connection keeps the lock from ending
            the snapshot transaction on engines where LOCK TABLES commits

    Example:
        >>> session = DumpSession(conn, open("backup.sql", "wb"), DumpConfig())
        >>> report = await session.run()
    """

    def __init__(
        self,
        connection: DbApiConnection,
        out: IO[bytes],
        config: DumpConfig | None = None,
        lock_connection: DbApiConnection | None = None,
        clock: Callable[[], str] = completion_stamp,
    ) -> None:
        """Initialize the session.

        Args:
            connection: DB-API connection to dump
            out: Binary sink the dump is streamed to
            config: Dump configuration (defaults apply when omitted)
            lock_connection: Optional separate connection for table locks
            clock: Returns the footer's completion time stamp
        """
        self.config = config or DumpConfig()
        self.out = out
        self.clock = clock
        self.connection = connection
        self.lock_connection = lock_connection

        self.report = DumpReport()
        self._db: SnapshotConnection | None = None
        self._lock_db: SnapshotConnection | None = None
        self._write_lock = asyncio.Lock()
        self._locked = False
        self._interrupted = False

    async def run(self) -> DumpReport:
        """Run the dump.

        Returns:
            DumpReport describing what was written

        Raises:
            DumpError: The first failure encountered
        """
        self.config.validate()
        start_time = time.time()

        if self.config.timeout_seconds is None:
            await self._run()
        else:
            try:
                await asyncio.wait_for(self._run(), self.config.timeout_seconds)
            except asyncio.TimeoutError:
                raise DumpTimeoutError(self.config.timeout_seconds)

        self.report.duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            "Dump completed",
            extra={
                "tables": len(self.report.tables),
                "statements": self.report.statements,
                "bytes_written": self.report.bytes_written,
                "duration_ms": self.report.duration_ms,
            },
        )
        return self.report

    async def _run(self) -> None:
        self._db = SnapshotConnection(self.connection, "snapshot")
        if self.lock_connection is not None and self.lock_connection is not self.connection:
            self._lock_db = SnapshotConnection(self.lock_connection, "lock")
        else:
            self._lock_db = self._db

        try:
            try:
                await self._begin()
                await self._dump()
            except asyncio.CancelledError:
                self._interrupted = True
                raise
            finally:
                await self._teardown()
        finally:
            if self._lock_db is not self._db:
                self._lock_db.shutdown()
            self._db.shutdown()

    async def _begin(self) -> None:
        for statement in BEGIN_STATEMENTS:
            await self._db.execute(statement)

    async def _dump(self) -> None:
        meta = ReportMetadata(dump_version=__version__)
        meta.server_version = await self._server_version()
        await self._write(render_header(meta))

        tables = await self._list_tables()
        logger.info(
            "Starting dump",
            extra={
                "tables": len(tables),
                "ignored": len(self.report.ignored_tables),
                "lock_tables": self.config.lock_tables,
            },
        )

        if self.config.lock_tables and tables:
            await self._lock_tables(tables)

        await self._dump_tables(tables)

        meta.complete_time = self.clock()
        await self._write(render_footer(meta))

    async def _teardown(self) -> None:
        # A cancelled dump never queues behind a driver call that is still blocking
        if self._locked:
            if self._interrupted and self._lock_db.busy:
                self._warn(
                    "Skipped UNLOCK TABLES: lock connection is busy with an interrupted "
                    "query; the lock is released when the connection closes"
                )
            else:
                try:
                    await self._lock_db.execute("UNLOCK TABLES")
                except Exception as e:
                    self._warn(f"Failed to unlock tables: {e}")
            self._locked = False

        if self._interrupted and self._db.busy:
            self._warn(
                "Skipped rollback: snapshot connection is busy with an interrupted "
                "query; the transaction ends when the connection closes"
            )
            return

        try:
            await self._db.rollback()
        except Exception as e:
            self._warn(f"Failed to roll back snapshot transaction: {e}")

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.report.warnings.append(message)

    async def _server_version(self) -> str:
        row = await self._db.query_one("SELECT version()")
        if not row or row[0] is None:
            return ""
        return str(row[0])

    async def _list_tables(self) -> list[str]:
        tables = []
        for row in await self._db.query_all("SHOW TABLES"):
            name = row[0] if row else None
            if name is None:
                continue
            if isinstance(name, (bytes, bytearray)):
                name = name.decode("utf-8")
            if name in self.config.ignore_tables:
                self.report.ignored_tables.append(name)
                continue
            tables.append(name)
        return tables

    async def _lock_tables(self, tables: list[str]) -> None:
        targets = ",".join(f"{quote_identifier(name)} READ /*!32311 LOCAL */" for name in tables)
        await self._lock_db.execute(f"LOCK TABLES {targets}")
        self._locked = True

    async def _dump_tables(self, tables: list[str]) -> None:
        semaphore = asyncio.Semaphore(self.config.max_concurrent_tables)

        async def _guarded(name: str) -> None:
            async with semaphore:
                await self._dump_table(name)

        tasks = [asyncio.ensure_future(_guarded(name)) for name in tables]
        if not tasks:
            return

        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        for task in tasks:
            if task in done and not task.cancelled() and task.exception() is not None:
                raise task.exception()

    async def _dump_table(self, name: str) -> None:
        table = TableDump(
            name,
            self._db,
            max_statement_bytes=self.config.max_statement_bytes,
            fetch_size=self.config.fetch_size,
        )
        create_sql = await table.create_sql()

        async with self._write_lock:
            written = 0
            async for chunk in table.render(create_sql):
                written += self._write_locked(chunk)

        self.report.tables.append(name)
        self.report.statements += table.statements
        logger.info(
            "Dumped table",
            extra={"table": name, "statements": table.statements, "bytes": written},
        )

    async def _write(self, text: str) -> None:
        async with self._write_lock:
            self._write_locked(text)

    def _write_locked(self, text: str) -> int:
        data = to_bytes(text)
        try:
            self.out.write(data)
        except Exception as e:
            raise DumpSinkError(f"Failed to write dump output: {e}") from e
        self.report.bytes_written += len(data)
        return len(data)
