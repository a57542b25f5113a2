"""
Per-table dump section rendering.

A section is the table's DDL followed by its data bracketed by a table lock
and DISABLE/ENABLE KEYS markers:

    DROP TABLE / CREATE TABLE
    LOCK TABLES ... WRITE; ALTER TABLE ... DISABLE KEYS
    INSERT ... (zero or more, each within the statement budget)
    ALTER TABLE ... ENABLE KEYS; UNLOCK TABLES

Invariants:
    - DDL is fetched and verified before any section text is produced
    - The column plan is derived on first data access and then fixed
    - Generated columns are excluded from SELECT and INSERT column lists
"""

from __future__ import annotations

import logging
from typing import Any, AsyncGenerator, AsyncIterator, Sequence

from .base import (
    Column,
    DumpConsistencyError,
    DumpSchemaError,
    category_for_type,
    quote_identifier,
)
from .batcher import batch_inserts
from .connection import SnapshotConnection

logger = logging.getLogger(__name__)

TABLE_HEAD_TEMPLATE = """
--
-- Table structure for table {name}
--

DROP TABLE IF EXISTS {name};
/*!40101 SET @saved_cs_client     = @@character_set_client */;
 SET character_set_client = utf8mb4 ;
{create_sql};
/*!40101 SET character_set_client = @saved_cs_client */;

--
-- Dumping data for table {name}
--

LOCK TABLES {name} WRITE;
/*!40000 ALTER TABLE {name} DISABLE KEYS */;
"""

TABLE_TAIL_TEMPLATE = """/*!40000 ALTER TABLE {name} ENABLE KEYS */;
UNLOCK TABLES;
"""

# SHOW COLUMNS result layout
_FIELD = 0
_TYPE = 1
_EXTRA = 5


class TableDump:
    """Dump state for one table within a snapshot session.

    Attributes:
        name: Table name as enumerated
        error: First failure seen while scanning, if any
        statements: INSERT statements produced so far
    """

    def __init__(
        self,
        name: str,
        connection: SnapshotConnection,
        max_statement_bytes: int,
        fetch_size: int = 1000,
    ) -> None:
        self.name = name
        self.connection = connection
        self.max_statement_bytes = max_statement_bytes
        self.fetch_size = fetch_size
        self.error: Exception | None = None
        self.statements = 0
        self._plan: list[Column] | None = None

    @property
    def quoted(self) -> str:
        return quote_identifier(self.name)

    async def create_sql(self) -> str:
        """Fetch the table's CREATE statement.

        Raises:
            DumpConsistencyError: If the server reports a different table name
        """
        row = await self.connection.query_one(f"SHOW CREATE TABLE {self.quoted}")
        returned = row[0] if row else None
        if returned != self.name:
            raise DumpConsistencyError(self.name, returned)
        return row[1] or ""

    async def columns(self) -> list[Column]:
        """Column plan for the table, loaded once."""
        if self._plan is not None:
            return self._plan

        rows = await self.connection.query_all(f"SHOW COLUMNS FROM {self.quoted}")
        plan = []
        for row in rows:
            extra = row[_EXTRA] if len(row) > _EXTRA else None
            if extra and "GENERATED" in str(extra).upper():
                continue
            plan.append(Column(name=row[_FIELD], category=category_for_type(str(row[_TYPE]))))

        if not plan:
            raise DumpSchemaError(f"No columns in table {self.name}.", table=self.name)

        self._plan = plan
        return plan

    async def rows(self) -> AsyncGenerator[Sequence[Any], None]:
        """Stream the table's rows in column plan order."""
        plan = await self.columns()
        select_list = ", ".join(column.quoted for column in plan)
        cursor = await self.connection.open_cursor(f"SELECT {select_list} FROM {self.quoted}")
        try:
            while True:
                batch = await cursor.fetchmany(self.fetch_size)
                if not batch:
                    break
                for row in batch:
                    if len(row) != len(plan):
                        raise DumpSchemaError(
                            f"Row width {len(row)} does not match {len(plan)} columns "
                            f"in table {self.name}",
                            table=self.name,
                        )
                    yield row
        finally:
            await cursor.close()

    async def inserts(self) -> AsyncIterator[str]:
        """Bounded INSERT statements for the table's data."""
        try:
            plan = await self.columns()
            rows = self.rows()
            try:
                async for statement in batch_inserts(
                    self.quoted, plan, rows, self.max_statement_bytes
                ):
                    self.statements += 1
                    yield statement
            finally:
                await rows.aclose()
        except Exception as e:
            self.error = e
            raise

    async def render(self, create_sql: str) -> AsyncIterator[str]:
        """Yield the table's section text piece by piece.

        Args:
            create_sql: Verified DDL from ``create_sql()``
        """
        yield TABLE_HEAD_TEMPLATE.format(name=self.quoted, create_sql=create_sql)
        async for statement in self.inserts():
            yield statement + "\n"
        yield TABLE_TAIL_TEMPLATE.format(name=self.quoted)
        logger.debug(
            "Rendered table",
            extra={"table": self.name, "statements": self.statements},
        )
