"""
Shared fixtures for snapdump tests.

ScriptedConnection is a PEP 249 connection whose answers are scripted by
regular expression. It records every statement it receives so tests can
assert on query traffic, and it can be told to fail or stall on chosen
statements.
"""

import re
import threading
import time

import pytest

CREATE_TEST_TABLE = (
    "CREATE TABLE 'Test_Table' (`id` int(11) NOT NULL AUTO_INCREMENT,"
    "`email` char(60) DEFAULT NULL, `name` char(60), PRIMARY KEY (`id`))"
    "ENGINE=InnoDB DEFAULT CHARSET=latin1"
)


class ScriptedCursor:
    """Buffered cursor over scripted rows."""

    def __init__(self, connection):
        self.connection = connection
        self.description = None
        self._rows = []
        self._pos = 0
        self.closed = False

    def execute(self, operation):
        self.connection.record(operation)
        self._rows = list(self.connection.answer(operation))
        self._pos = 0

    def fetchone(self):
        if self._pos >= len(self._rows):
            return None
        row = self._rows[self._pos]
        self._pos += 1
        return row

    def fetchmany(self, size):
        batch = self._rows[self._pos : self._pos + size]
        self._pos += len(batch)
        return batch

    def fetchall(self):
        batch = self._rows[self._pos :]
        self._pos = len(self._rows)
        return batch

    def close(self):
        self.closed = True


class ScriptedConnection:
    """DB-API connection answering statements from a script."""

    def __init__(self):
        self.statements = []
        self.tables = []
        self.rolled_back = False
        self.closed = False
        self.cursors = []
        self._answers = []
        self._failures = []
        self._delays = []
        self._lock = threading.Lock()

    def on(self, pattern, rows):
        """Answer statements matching ``pattern`` with ``rows``."""
        self._answers.append((re.compile(pattern), rows))
        return self

    def fail(self, pattern, error=None):
        """Raise ``error`` for statements matching ``pattern``."""
        self._failures.append((re.compile(pattern), error or RuntimeError("scripted failure")))
        return self

    def stall(self, pattern, seconds):
        """Sleep before answering statements matching ``pattern``."""
        self._delays.append((re.compile(pattern), seconds))
        return self

    def table(self, name, columns, rows, create_sql=None, returned_name=None):
        """Script the introspection and data queries for one table.

        Args:
            name: Table name listed by SHOW TABLES
            columns: (field, type, extra) tuples for SHOW COLUMNS
            rows: Rows returned by the SELECT
            create_sql: DDL returned by SHOW CREATE TABLE
            returned_name: Table name SHOW CREATE TABLE reports (defaults to name)
        """
        quoted = re.escape("`" + name.replace("`", "``") + "`")
        self.tables.append(name)
        reported = name if returned_name is None else returned_name
        self.on(
            f"^SHOW CREATE TABLE {quoted}$",
            [(reported, create_sql or f"CREATE TABLE `{name}` (...)")],
        )
        self.on(
            f"^SHOW COLUMNS FROM {quoted}$",
            [(field, type_, "YES", "", None, extra) for field, type_, extra in columns],
        )
        self.on(f"^SELECT .+ FROM {quoted}$", rows)
        return self

    def record(self, operation):
        with self._lock:
            self.statements.append(operation)
        for pattern, seconds in self._delays:
            if pattern.search(operation):
                time.sleep(seconds)
        for pattern, error in self._failures:
            if pattern.search(operation):
                raise error

    def answer(self, operation):
        if operation == "SHOW TABLES":
            return [(name,) for name in self.tables]
        for pattern, rows in reversed(self._answers):
            if pattern.search(operation):
                return rows
        return []

    def queries(self, prefix):
        return [s for s in self.statements if s.startswith(prefix)]

    def cursor(self):
        cursor = ScriptedCursor(self)
        self.cursors.append(cursor)
        return cursor

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True


@pytest.fixture
def connection():
    """Empty scripted connection reporting a fixed server version."""
    conn = ScriptedConnection()
    conn.on(r"^SELECT version\(\)$", [("test_version",)])
    return conn


@pytest.fixture
def test_table(connection):
    """Connection scripted with the Test_Table fixture table."""
    connection.table(
        "Test_Table",
        columns=[
            ("id", "int(11)", ""),
            ("email", "varchar(255)", ""),
            ("name", "varchar(255)", ""),
            ("hash", "varchar(255)", "VIRTUAL GENERATED"),
        ],
        rows=[(1, None, "Test Name 1"), (2, "test2@test.de", "Test Name 2")],
        create_sql=CREATE_TEST_TABLE,
    )
    return connection
