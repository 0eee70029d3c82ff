"""
SQLite engine for TinyStore.

The narrow capability surface the rest of TinyStore relies on:
    - create_schema_object(sql): run DDL (may contain several statements)
    - mutate(sql): run one data-changing statement
    - query(sql): run one SELECT, rows as {column: text}
    - introspect_columns(table): column names of a table

An engine is NOT thread-safe. It is owned by exactly one Database, whose
worker thread is the only caller. Errors surface as exceptions; the
Database turns them into boolean results.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Any

from tinystore.errors import DatabaseAlreadyOpenError, DatabaseNotOpenError, DatabaseOpenError
from tinystore.schema import DEFAULT_PRAGMAS

logger = logging.getLogger(__name__)


def quote_identifier(name: str) -> str:
    """Double-quote an identifier, dropping embedded quotes."""
    return '"' + name.replace('"', "") + '"'


def quote_literal(value: str) -> str:
    """Single-quote a text literal, doubling embedded quotes."""
    return "'" + value.replace("'", "''") + "'"


def select_statement(
    table: str,
    condition: str | None = None,
    sort_key: str | None = None,
    numeric: bool = False,
    reverse: bool = False,
    offset: int | None = None,
    limit: int | None = None,
) -> str:
    """
    SELECT text for a table, filter, ordering and window.

    Args:
        table: Table name (quoted here)
        condition: Raw fragment appended verbatim, e.g. ``WHERE age > 3``
        sort_key: Column to order by
        numeric: Compare the sort column as a number
        reverse: Sort descending
        offset: Rows to skip
        limit: Maximum rows to return

    Returns:
        Statement text
    """
    statement = f"SELECT * FROM {quote_identifier(table)}"
    if condition:
        statement += f" {condition}"
    if sort_key:
        statement += f" ORDER BY {quote_identifier(sort_key)}"
        # Columns hold text; "10" < "2" unless coerced.
        if numeric:
            statement += " + 0"
        if reverse:
            statement += " DESC"
    if limit is not None:
        statement += f" LIMIT {int(offset or 0)}, {int(limit)}"
    elif offset:
        statement += f" LIMIT -1 OFFSET {int(offset)}"
    return statement


class SQLiteEngine:
    """
    One SQLite connection with a text-only view of the data.

    Usage:
        engine = SQLiteEngine("store.db")
        engine.open()
        engine.mutate("INSERT INTO notes (id) VALUES ('a')")
        rows = engine.query("SELECT * FROM notes")
        engine.close()
    """

    def __init__(
        self,
        db_path: str | Path,
        pragmas: dict[str, str | int] | None = None,
    ) -> None:
        """
        Initialize the engine without opening it.

        Args:
            db_path: Path to the SQLite database file, or ":memory:"
            pragmas: PRAGMA name to value, applied right after opening
        """
        self.db_path = str(db_path)
        self.pragmas = dict(DEFAULT_PRAGMAS if pragmas is None else pragmas)
        self._conn: sqlite3.Connection | None = None

    @property
    def is_open(self) -> bool:
        """Whether the connection is established."""
        return self._conn is not None

    def open(self) -> None:
        """
        Open the connection.

        Raises:
            DatabaseAlreadyOpenError: If the engine is already open
            DatabaseOpenError: If SQLite cannot open the file
        """
        if self._conn is not None:
            raise DatabaseAlreadyOpenError(db_path=self.db_path, operation="open")
        try:
            # Only ever used from the owning Database's worker thread.
            conn = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                isolation_level=None,
            )
            conn.row_factory = sqlite3.Row
            for name, value in self.pragmas.items():
                try:
                    conn.execute(f"PRAGMA {name} = {value}")
                except sqlite3.DatabaseError as e:
                    logger.debug("Ignoring PRAGMA %s on %s: %s", name, self.db_path, e)
        except sqlite3.Error as e:
            raise DatabaseOpenError(
                db_path=self.db_path,
                operation="open",
                underlying_error=str(e),
            ) from e
        self._conn = conn

    def close(self) -> None:
        """Close the connection if open."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def create_schema_object(self, sql: str) -> None:
        """Run one or more DDL statements."""
        self._connection("create_schema_object").executescript(sql)

    def mutate(self, sql: str) -> int:
        """
        Run one data-changing statement.

        Returns:
            Number of rows changed
        """
        cursor = self._connection("mutate").execute(sql)
        try:
            return cursor.rowcount
        finally:
            cursor.close()

    def query(self, sql: str) -> list[dict[str, str]]:
        """
        Run one SELECT.

        Every non-null cell is returned as text; null cells are left out.

        Returns:
            List of {column: text} rows, skipping rows without any value
        """
        cursor = self._connection("query").execute(sql)
        try:
            rows = []
            for row in cursor:
                values = {
                    column: _as_text(row[column])
                    for column in row.keys()
                    if row[column] is not None
                }
                if values:
                    rows.append(values)
            return rows
        finally:
            cursor.close()

    def introspect_columns(self, table: str) -> list[str]:
        """Column names of a table (empty if the table does not exist)."""
        cursor = self._connection("introspect_columns").execute(
            f"PRAGMA table_info({quote_identifier(table)})"
        )
        try:
            return [row["name"] for row in cursor]
        finally:
            cursor.close()

    def _connection(self, operation: str) -> sqlite3.Connection:
        if self._conn is None:
            raise DatabaseNotOpenError(db_path=self.db_path, operation=operation)
        return self._conn


def _as_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)
