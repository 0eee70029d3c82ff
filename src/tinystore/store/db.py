"""
Serialized database access for TinyStore.

A Database owns one SQLiteEngine and one worker thread. Everything that
touches the engine (opening, DDL, statements, introspection, closing)
is queued and executed on that thread, one item at a time, in the order
it was submitted. SQLite connections must not be used from several
threads at once; this class is what makes that safe.

Results never cross the thread boundary as exceptions. Each operation
resolves to a boolean (or a QueryResult for reads), which is handed to
the caller's completion context and to the returned future.

Usage:
    db = Database("store.db")
    db.configure().result()
    db.execute("DELETE FROM notes", on_done=print)
    ok, rows = db.fetch("SELECT * FROM notes").result()
    db.close()  # waits for queued work, then closes the handle
"""

import logging
import queue
import sqlite3
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Callable, NamedTuple

from tinystore.dispatch import CompletionContext, deliver
from tinystore.errors import DatabaseClosedError, StatementError, TinyStoreError
from tinystore.schema import StoreConfig
from tinystore.store.engine import SQLiteEngine, quote_identifier

logger = logging.getLogger(__name__)

_STOP = object()


class QueryResult(NamedTuple):
    """Outcome of a read: rows is None when success is False."""

    success: bool
    rows: list[dict[str, str]] | None


class Database:
    """
    Single-worker owner of one SQLite handle.

    The handle is opened by configure() (at most once) and released by
    close(). Work submitted after close() reports failure.

    Or use as context manager:
        with Database("store.db") as db:
            db.configure().result()
            ...
    """

    def __init__(
        self,
        db_path: str | Path,
        *,
        pragmas: dict[str, str | int] | None = None,
        engine: SQLiteEngine | None = None,
    ) -> None:
        """
        Initialize the database and start its worker.

        Args:
            db_path: Path to the SQLite database file, or ":memory:"
            pragmas: PRAGMA name to value, applied on open
            engine: Pre-built engine (the Database takes ownership)
        """
        self.db_path = str(db_path)
        self._engine = engine if engine is not None else SQLiteEngine(self.db_path, pragmas)
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False
        self._thread = threading.Thread(
            target=self._worker,
            name=f"tinystore-db-{Path(self.db_path).name}",
            daemon=True,
        )
        self._thread.start()

    @classmethod
    def from_config(cls, config: StoreConfig) -> "Database":
        """Build a database from a StoreConfig."""
        return cls(config.database_path, pragmas=dict(config.pragmas))

    @property
    def closed(self) -> bool:
        """Whether close() has been called."""
        return self._closed

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def configure(
        self,
        context: CompletionContext | None = None,
        on_done: Callable[[bool], Any] | None = None,
    ) -> "Future[bool]":
        """
        Open the handle.

        Reports False if the handle is already open, the database was
        closed, or SQLite cannot open the file.
        """
        return self._submit("open", None, lambda engine: engine.open(), context, on_done)

    def barrier(self) -> None:
        """Block until everything queued so far has run."""
        done = threading.Event()
        if not self._put(lambda _engine: done.set()):
            return
        done.wait()

    def close(self) -> None:
        """
        Drain the worker, then release the handle.

        Blocks until every queued operation has finished.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_STOP)
        self._thread.join()

    def __enter__(self) -> "Database":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager."""
        self.close()

    # =========================================================================
    # Operations
    # =========================================================================

    def create_table(
        self,
        statement: str,
        context: CompletionContext | None = None,
        on_done: Callable[[bool], Any] | None = None,
    ) -> "Future[bool]":
        """Run schema DDL such as CREATE TABLE IF NOT EXISTS."""
        return self._submit(
            "create_table",
            statement,
            lambda engine: engine.create_schema_object(statement),
            context,
            on_done,
        )

    def execute(
        self,
        statement: str,
        context: CompletionContext | None = None,
        on_done: Callable[[bool], Any] | None = None,
    ) -> "Future[bool]":
        """Run one data-changing statement."""
        return self._submit(
            "execute",
            statement,
            lambda engine: engine.mutate(statement),
            context,
            on_done,
        )

    def fetch(
        self,
        statement: str,
        context: CompletionContext | None = None,
        on_done: Callable[[QueryResult], Any] | None = None,
    ) -> "Future[QueryResult]":
        """Run one SELECT and return its rows as text."""
        return self._submit(
            "fetch",
            statement,
            lambda engine: engine.query(statement),
            context,
            on_done,
            wrap=lambda rows: QueryResult(True, rows),
            failure=QueryResult(False, None),
        )

    def ensure_columns(
        self,
        table: str,
        columns: list[str],
        context: CompletionContext | None = None,
        on_done: Callable[[bool], Any] | None = None,
    ) -> "Future[bool]":
        """
        Add every listed column the table lacks, as TEXT.

        Existing columns are never altered or dropped. Every missing column
        is attempted; the result is False if any of them failed.
        """

        def reconcile(engine: SQLiteEngine) -> None:
            existing = set(engine.introspect_columns(table))
            failures = []
            for column in columns:
                if column.replace('"', "") in existing:
                    continue
                statement = (
                    f"ALTER TABLE {quote_identifier(table)} "
                    f"ADD COLUMN {quote_identifier(column)} TEXT"
                )
                try:
                    engine.mutate(statement)
                    logger.info("Added column %s.%s", table, column)
                except sqlite3.Error as e:
                    failures.append(StatementError(
                        db_path=self.db_path,
                        operation="ensure_columns",
                        statement=statement,
                        underlying_error=str(e),
                    ))
            if failures:
                raise failures[0]

        return self._submit("ensure_columns", table, reconcile, context, on_done)

    # =========================================================================
    # Internal
    # =========================================================================

    def _submit(
        self,
        operation: str,
        statement: str | None,
        func: Callable[[SQLiteEngine], Any],
        context: CompletionContext | None,
        on_done: Callable[[Any], Any] | None,
        wrap: Callable[[Any], Any] = lambda _value: True,
        failure: Any = False,
    ) -> Future:
        outcome: Future = Future()

        def job(engine: SQLiteEngine) -> None:
            try:
                value = func(engine)
            except sqlite3.Error as e:
                self._log_failure(StatementError(
                    db_path=self.db_path,
                    operation=operation,
                    statement=statement or "",
                    underlying_error=str(e),
                ))
                result = failure
            except TinyStoreError as e:
                self._log_failure(e)
                result = failure
            else:
                result = wrap(value)
            deliver(outcome, result, on_done, context)

        if not self._put(job):
            self._log_failure(DatabaseClosedError(db_path=self.db_path, operation=operation))
            deliver(outcome, failure, on_done, context)
        return outcome

    def _put(self, job: Callable[[SQLiteEngine], Any]) -> bool:
        with self._lock:
            if self._closed:
                return False
            self._queue.put(job)
            return True

    def _log_failure(self, error: TinyStoreError) -> None:
        logger.warning("%s", error)
        logger.debug("Failure context: %r", error.context)

    def _worker(self) -> None:
        while True:
            job = self._queue.get()
            if job is _STOP:
                self._engine.close()
                return
            try:
                job(self._engine)
            except Exception:
                logger.exception("Unhandled error on %s worker", self.db_path)
