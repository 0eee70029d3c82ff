"""
Integration tests for TinyStore.

Tests cover:
- Every column kind surviving a trip through SQLite
- Ordering of writes and reads on one table
- Independence of different tables
- Additive evolution of existing tables
- Batch writes as a single statement
- Persistence across database handles
- Blob and record stores sharing one scheduler
"""

import threading
from pathlib import Path
from typing import Generator

import pytest

from models import WAIT, Contact, Gadget, full_gadget
from tinystore import BlobStore, Database, RecordStore, StoreConfig, TaskScheduler
from tinystore.store import SQLiteEngine


class CountingEngine(SQLiteEngine):
    """Engine that records every data-changing statement."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.mutations: list[str] = []

    def mutate(self, sql: str) -> int:
        self.mutations.append(sql)
        return super().mutate(sql)


@pytest.fixture
def counting(db_path: Path) -> Generator[tuple[Database, CountingEngine], None, None]:
    """A database whose engine counts statements."""
    engine = CountingEngine(db_path)
    db = Database(db_path, engine=engine)
    assert db.configure().result(timeout=WAIT) is True
    yield db, engine
    db.close()


# =============================================================================
# Round Trip Tests
# =============================================================================


class TestRoundTrip:
    """Tests for values surviving storage."""

    def test_every_kind(self, database: Database, scheduler: TaskScheduler) -> None:
        store = RecordStore(Gadget, database, scheduler)
        store.create()
        gadget = full_gadget()
        store.upsert(gadget)
        ok, records = store.query().result(timeout=WAIT)
        assert ok
        assert records == [gadget]

    def test_persists_across_handles(self, db_path: Path, scheduler: TaskScheduler) -> None:
        with Database(db_path) as first:
            first.configure()
            store = RecordStore(Contact, first, scheduler)
            store.create()
            assert store.upsert(Contact(id="a", name="ann", age=3)).result(timeout=WAIT)

        with Database(db_path) as second:
            second.configure()
            store = RecordStore(Contact, second, scheduler)
            store.create()
            assert store.get("a").result(timeout=WAIT) == Contact(id="a", name="ann", age=3)


# =============================================================================
# Ordering Tests
# =============================================================================


class TestOrdering:
    """Tests for per-table ordering and cross-table independence."""

    def test_successive_writes_same_id(self, database: Database, scheduler: TaskScheduler) -> None:
        """A read issued after N writes to one id observes the last one."""
        store = RecordStore(Contact, database, scheduler)
        store.create()
        for i in range(50):
            store.upsert(Contact(id="same", name=f"v{i}", age=i))
        record = store.get("same").result(timeout=WAIT)
        assert record.name == "v49"
        assert record.age == 49

    def test_one_table_never_interleaves(self, database: Database, scheduler: TaskScheduler) -> None:
        """Callbacks of one table arrive in issue order, from many threads."""
        store = RecordStore(Contact, database, scheduler)
        store.create().result(timeout=WAIT)
        seen: list[tuple[int, int]] = []
        lock = threading.Lock()
        futures = []

        def issue(t: int) -> None:
            for i in range(10):
                def note(_ok: bool, t: int = t, i: int = i) -> None:
                    with lock:
                        seen.append((t, i))
                with lock:
                    futures.append(store.upsert(Contact(id=f"{t}-{i}", name="n", age=i), on_done=note))

        threads = [threading.Thread(target=issue, args=(t,)) for t in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert all(f.result(timeout=WAIT) for f in futures)

        for t in range(4):
            assert [i for (tt, i) in seen if tt == t] == list(range(10))
        ok, records = store.query().result(timeout=WAIT)
        assert len(records) == 40

    def test_two_tables_may_interleave(self, database: Database, scheduler: TaskScheduler) -> None:
        """A slow operation on one table does not hold up another table."""
        slow = RecordStore(Contact, database, scheduler, name="slow")
        fast = RecordStore(Contact, database, scheduler, name="fast")
        slow.create().result(timeout=WAIT)
        fast.create().result(timeout=WAIT)

        gate = threading.Event()
        order: list[str] = []
        slow.scheduler.enqueue(slow.name, lambda: gate.wait(WAIT))
        blocked = slow.upsert(Contact(id="s", name="s", age=1), on_done=lambda _ok: order.append("slow"))
        done = fast.upsert(Contact(id="f", name="f", age=1), on_done=lambda _ok: order.append("fast"))

        assert done.result(timeout=WAIT) is True
        assert not blocked.done()
        gate.set()
        assert blocked.result(timeout=WAIT) is True
        assert order == ["fast", "slow"]


# =============================================================================
# Schema Evolution Tests
# =============================================================================


class TestEvolution:
    """Tests for additive reconciliation of existing tables."""

    def test_missing_columns_are_added(self, database: Database, scheduler: TaskScheduler) -> None:
        database.create_table('CREATE TABLE "Contact" ("id" TEXT PRIMARY KEY, "name" TEXT, "legacy" TEXT)')
        database.execute("INSERT INTO \"Contact\" VALUES ('old', 'olga', 'keep me')")

        store = RecordStore(Contact, database, scheduler)
        assert store.create().result(timeout=WAIT) is True

        ok, rows = database.fetch('PRAGMA table_info("Contact")').result(timeout=WAIT)
        assert [r["name"] for r in rows] == ["id", "name", "legacy", "age", "email"]

        # The old row lacks the required age and is left out.
        store.upsert(Contact(id="new", name="nina", age=5))
        ok, records = store.query().result(timeout=WAIT)
        assert ok
        assert [r.id for r in records] == ["new"]

        # Unknown columns are preserved.
        ok, rows = database.fetch("SELECT legacy FROM \"Contact\" WHERE id = 'old'").result(timeout=WAIT)
        assert rows == [{"legacy": "keep me"}]


# =============================================================================
# Batch Tests
# =============================================================================


class TestBatches:
    """Tests for batch statements."""

    def test_batch_is_one_statement(self, counting, scheduler: TaskScheduler) -> None:
        db, engine = counting
        store = RecordStore(Contact, db, scheduler)
        store.create().result(timeout=WAIT)
        before = len(engine.mutations)

        batch = [Contact(id=str(i), name="n", age=i) for i in range(100)]
        assert store.upsert_batch(batch).result(timeout=WAIT) is True

        statements = engine.mutations[before:]
        assert len(statements) == 1
        assert statements[0].startswith('INSERT OR REPLACE INTO "Contact"')

        ok, records = store.query().result(timeout=WAIT)
        assert len(records) == 100

    def test_empty_delete_batch_runs_nothing(self, counting, scheduler: TaskScheduler) -> None:
        db, engine = counting
        store = RecordStore(Contact, db, scheduler)
        store.create().result(timeout=WAIT)
        before = len(engine.mutations)

        assert store.delete_batch([]).result(timeout=WAIT) is False
        assert engine.mutations[before:] == []


# =============================================================================
# Shared Scheduler Tests
# =============================================================================


class TestComposition:
    """Tests for wiring stores from one configuration."""

    def test_config_driven_setup(self, temp_dir: Path) -> None:
        config = StoreConfig(
            database_path=str(temp_dir / "app.db"),
            blob_root=str(temp_dir / "blobs"),
            scheduler_workers=2,
        )
        with TaskScheduler(max_workers=config.scheduler_workers) as scheduler:
            with Database.from_config(config) as db:
                assert db.configure().result(timeout=WAIT)
                contacts = RecordStore(Contact, db, scheduler)
                contacts.create()
                blobs = BlobStore(config.blob_root, scheduler=scheduler)

                contact = Contact(id="a", name="ann", age=30)
                assert contacts.upsert(contact).result(timeout=WAIT)
                assert blobs.put("a.json", contact).result(timeout=WAIT)

                from_db = contacts.get("a").result(timeout=WAIT)
                from_blob = blobs.get("a.json", model=Contact).result(timeout=WAIT)
                assert from_db == from_blob == contact

        assert (temp_dir / "blobs" / "a.json").is_file()
