"""
Record tables for TinyStore.

A RecordStore maps one Record subclass onto one table. It derives the
table schema once, builds statement text, and submits every operation
to the shared TaskScheduler keyed by the table name. Operations on one
table therefore run, and report back, in the order they were issued;
operations on different tables are independent.

Every operation:
    - returns a concurrent.futures.Future with its result
    - accepts on_done, called with the same result on the completion
      context (default: the main context)
    - never raises once the store exists; failures are logged and
      reported as False / empty results

Statements are plain text. Identifiers are double-quoted; literals are
single-quoted with embedded quotes doubled. Condition fragments passed
by callers are used verbatim.
"""

import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Generic, Iterable, Mapping, NamedTuple, TypeVar

from tinystore.codec import Codec, derive_schema, stringify
from tinystore.dispatch import INLINE, CompletionContext, deliver
from tinystore.errors import EmptyBatchError, InvalidFilterValueError, TinyStoreError
from tinystore.scheduler import TaskScheduler
from tinystore.schema import Record, TableSchema
from tinystore.store.db import Database
from tinystore.store.engine import quote_identifier, quote_literal, select_statement

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)
T = TypeVar("T")


class LoadResult(NamedTuple):
    """Outcome of a query: records that decoded, in result order."""

    success: bool
    records: list[Any]


class RecordStore(Generic[R]):
    """
    Asynchronous access to the table of one record type.

    Usage:
        scheduler = TaskScheduler()
        db = Database("store.db")
        db.configure().result()

        notes = RecordStore(Note, db, scheduler)
        notes.create().result()
        notes.upsert(Note(id="a", text="hello"))
        ok, rows = notes.query("WHERE text LIKE 'h%'", sort_key="created").result()
    """

    def __init__(
        self,
        record_type: type[R],
        database: Database,
        scheduler: TaskScheduler,
        name: str | None = None,
    ) -> None:
        """
        Derive the schema and bind the store.

        Args:
            record_type: Record subclass stored in this table
            database: Database owning the handle
            scheduler: Scheduler shared by all stores of the process
            name: Table name (defaults to the record class name)

        Raises:
            SchemaError: If the record type cannot be mapped onto a table
        """
        self.schema: TableSchema = derive_schema(record_type, name)
        self.codec = Codec(record_type, self.schema)
        self.record_type = record_type
        self.name = self.schema.name
        self.database = database
        self.scheduler = scheduler
        self._table = quote_identifier(self.name)
        self._registration: Future | None = None
        self._registration_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"RecordStore({self.record_type.__name__}, table={self.name!r})"

    # =========================================================================
    # Table Registration
    # =========================================================================

    def create(
        self,
        context: CompletionContext | None = None,
        on_done: Callable[[bool], Any] | None = None,
    ) -> "Future[bool]":
        """
        Create the table if missing and add any declared column it lacks.

        Runs once per store; later calls report the first run's outcome.
        A failure is logged and reported, never raised.
        """
        with self._registration_lock:
            if self._registration is None:
                self._registration = self._schedule("create", self._register, False, INLINE, None)
            registration = self._registration

        outcome: Future = Future()
        registration.add_done_callback(
            lambda f: deliver(outcome, f.result(), on_done, context)
        )
        return outcome

    def create_statement(self) -> str:
        """CREATE TABLE IF NOT EXISTS text for this schema."""
        columns = ", ".join(f"{quote_identifier(c)} TEXT" for c in self.schema.columns)
        body = '"id" TEXT PRIMARY KEY' + (f", {columns}" if columns else "")
        return f"CREATE TABLE IF NOT EXISTS {self._table} ({body})"

    def _register(self) -> bool:
        created = self.database.create_table(self.create_statement(), INLINE).result()
        if not created:
            logger.warning("Could not create table %s", self.name)
        reconciled = self.database.ensure_columns(
            self.name, ["id", *self.schema.columns], INLINE
        ).result()
        if not reconciled:
            logger.warning("Could not reconcile columns of %s", self.name)
        return created and reconciled

    # =========================================================================
    # Writes
    # =========================================================================

    def upsert(
        self,
        record: R,
        context: CompletionContext | None = None,
        on_done: Callable[[bool], Any] | None = None,
    ) -> "Future[bool]":
        """Insert the record, replacing any row with the same id."""

        def work() -> bool:
            values = self.codec.encode(record)
            columns = ", ".join(quote_identifier(c) for c in ["id", *values])
            literals = ", ".join(quote_literal(v) for v in [record.id, *values.values()])
            statement = f"INSERT OR REPLACE INTO {self._table} ({columns}) VALUES ({literals})"
            return self._execute(statement)

        return self._schedule("upsert", work, False, context, on_done)

    def upsert_batch(
        self,
        records: Iterable[R],
        context: CompletionContext | None = None,
        on_done: Callable[[bool], Any] | None = None,
    ) -> "Future[bool]":
        """
        Insert or replace many records with one multi-row statement.

        An empty batch reports failure.
        """
        records = list(records)

        def work() -> bool:
            if not records:
                raise EmptyBatchError(table=self.name, operation="upsert_batch")
            names = ["id", *self.schema.columns]
            tuples = []
            for record in records:
                values = self.codec.encode(record)
                cells = [quote_literal(record.id)]
                for column in self.schema.columns:
                    text = values.get(column)
                    cells.append("NULL" if text is None else quote_literal(text))
                tuples.append("(" + ", ".join(cells) + ")")
            columns = ", ".join(quote_identifier(c) for c in names)
            statement = (
                f"INSERT OR REPLACE INTO {self._table} ({columns}) VALUES "
                + ", ".join(tuples)
            )
            return self._execute(statement)

        return self._schedule("upsert_batch", work, False, context, on_done)

    def delete(
        self,
        record: R,
        context: CompletionContext | None = None,
        on_done: Callable[[bool], Any] | None = None,
    ) -> "Future[bool]":
        """Delete the row with the record's id."""
        statement = f'DELETE FROM {self._table} WHERE "id" = {quote_literal(record.id)}'
        return self._schedule("delete", lambda: self._execute(statement), False, context, on_done)

    def delete_batch(
        self,
        records: Iterable[R],
        context: CompletionContext | None = None,
        on_done: Callable[[bool], Any] | None = None,
    ) -> "Future[bool]":
        """
        Delete the rows of all given records in one statement.

        An empty batch reports failure.
        """
        ids = [record.id for record in records]

        def work() -> bool:
            if not ids:
                raise EmptyBatchError(table=self.name, operation="delete_batch")
            members = ", ".join(quote_literal(i) for i in ids)
            return self._execute(f'DELETE FROM {self._table} WHERE "id" IN ({members})')

        return self._schedule("delete_batch", work, False, context, on_done)

    def delete_all(
        self,
        context: CompletionContext | None = None,
        on_done: Callable[[bool], Any] | None = None,
    ) -> "Future[bool]":
        """Delete every row of the table."""
        statement = f"DELETE FROM {self._table}"
        return self._schedule("delete_all", lambda: self._execute(statement), False, context, on_done)

    def delete_where(
        self,
        condition: str,
        context: CompletionContext | None = None,
        on_done: Callable[[bool], Any] | None = None,
    ) -> "Future[bool]":
        """Delete the rows matching a raw condition such as ``WHERE age > 3``."""
        statement = f"DELETE FROM {self._table} {condition}"
        return self._schedule("delete_where", lambda: self._execute(statement), False, context, on_done)

    def delete_matching(
        self,
        values: Mapping[str, Any],
        context: CompletionContext | None = None,
        on_done: Callable[[bool], Any] | None = None,
    ) -> "Future[bool]":
        """
        Delete the rows whose columns equal all given values.

        An empty mapping or a value without a text form reports failure.
        """
        values = dict(values)

        def work() -> bool:
            if not values:
                raise EmptyBatchError(table=self.name, operation="delete_matching")
            condition = self._equality_condition(values)
            return self._execute(f"DELETE FROM {self._table} {condition}")

        return self._schedule("delete_matching", work, False, context, on_done)

    # =========================================================================
    # Reads
    # =========================================================================

    def query(
        self,
        condition: str | None = None,
        sort_key: str | None = None,
        reverse: bool = False,
        offset: int | None = None,
        limit: int | None = None,
        context: CompletionContext | None = None,
        on_done: Callable[[LoadResult], Any] | None = None,
    ) -> "Future[LoadResult]":
        """
        Load records.

        Args:
            condition: Raw fragment appended after SELECT, e.g. ``WHERE age > 3``
            sort_key: Column to order by (numeric kinds compare as numbers)
            reverse: Sort descending
            offset: Rows to skip
            limit: Maximum rows to return

        Returns:
            Future of LoadResult. Rows the record type rejects are left out
            without affecting success.
        """

        def work() -> LoadResult:
            return self._load(self.select_statement(condition, sort_key, reverse, offset, limit))

        return self._schedule("query", work, LoadResult(False, []), context, on_done)

    def query_matching(
        self,
        values: Mapping[str, Any],
        sort_key: str | None = None,
        reverse: bool = False,
        offset: int | None = None,
        limit: int | None = None,
        context: CompletionContext | None = None,
        on_done: Callable[[LoadResult], Any] | None = None,
    ) -> "Future[LoadResult]":
        """
        Load records whose columns equal all given values.

        A value without a deterministic text form fails the whole call.
        An empty mapping loads everything.
        """
        values = dict(values)

        def work() -> LoadResult:
            condition = self._equality_condition(values) if values else None
            return self._load(self.select_statement(condition, sort_key, reverse, offset, limit))

        return self._schedule("query_matching", work, LoadResult(False, []), context, on_done)

    def get(
        self,
        record_id: str,
        context: CompletionContext | None = None,
        on_done: Callable[[R | None], Any] | None = None,
    ) -> "Future[R | None]":
        """Load the record with the given id, or None."""

        def work() -> R | None:
            condition = f'WHERE "id" = {quote_literal(record_id)}'
            result = self._load(self.select_statement(condition))
            return result.records[0] if result.records else None

        return self._schedule("get", work, None, context, on_done)

    def select_statement(
        self,
        condition: str | None = None,
        sort_key: str | None = None,
        reverse: bool = False,
        offset: int | None = None,
        limit: int | None = None,
    ) -> str:
        """SELECT text for the given filter, ordering and window."""
        return select_statement(
            self.name,
            condition,
            sort_key,
            numeric=bool(sort_key) and self.schema.is_numeric(sort_key),
            reverse=reverse,
            offset=offset,
            limit=limit,
        )

    # =========================================================================
    # Internal
    # =========================================================================

    def _equality_condition(self, values: dict[str, Any]) -> str:
        clauses = []
        for key, value in values.items():
            text = stringify(value)
            if text is None:
                raise InvalidFilterValueError(
                    table=self.name,
                    key=key,
                    value_type=type(value).__name__,
                )
            clauses.append(f"{quote_identifier(key)} = {quote_literal(text)}")
        return "WHERE " + " AND ".join(clauses)

    def _execute(self, statement: str) -> bool:
        return self.database.execute(statement, INLINE).result()

    def _load(self, statement: str) -> LoadResult:
        success, rows = self.database.fetch(statement, INLINE).result()
        if not success:
            return LoadResult(False, [])
        records = []
        for row in rows or []:
            record = self.codec.decode(row)
            if record is not None:
                records.append(record)
        return LoadResult(True, records)

    def _schedule(
        self,
        operation: str,
        work: Callable[[], T],
        failure: T,
        context: CompletionContext | None,
        on_done: Callable[[T], Any] | None,
    ) -> "Future[T]":
        outcome: Future = Future()
        started = threading.Event()

        def run() -> None:
            started.set()
            try:
                result = work()
            except TinyStoreError as e:
                logger.warning("%s %s failed: %s", self.name, operation, e)
                result = failure
            except Exception:
                logger.exception("%s %s failed unexpectedly", self.name, operation)
                result = failure
            deliver(outcome, result, on_done, context)

        def rejected(task: Future) -> None:
            # The scheduler failed the task without running it.
            if not started.is_set():
                logger.warning("%s %s was not run: %s", self.name, operation, task.exception())
                deliver(outcome, failure, on_done, context)

        self.scheduler.enqueue(self.name, run).add_done_callback(rejected)
        return outcome
