"""
TinyStore - Asynchronous typed record storage on SQLite.

TinyStore stores Pydantic records in SQLite tables without hand-written
queries. It provides:
- One table per record type, created and extended automatically
- Per-table FIFO ordering of concurrent operations
- Exclusive, sequential access to each SQLite handle
- Lossless round-trips of every field through text columns

Example usage:
    scheduler = TaskScheduler()
    db = Database("app.db")
    db.configure().result()
    notes = RecordStore(Note, db, scheduler)
    notes.create()
    notes.upsert(Note(id="1", text="hi"), on_done=print)
"""

from tinystore.scheduler import TaskScheduler
from tinystore.schema import ColumnKind, Record, StoreConfig, TableSchema
from tinystore.store import BlobStore, Database, LoadResult, RecordStore

__version__ = "0.1.0"
__author__ = "TinyStore Contributors"

__all__ = [
    "BlobStore",
    "ColumnKind",
    "Database",
    "LoadResult",
    "Record",
    "RecordStore",
    "StoreConfig",
    "TableSchema",
    "TaskScheduler",
    "__author__",
    "__version__",
]
