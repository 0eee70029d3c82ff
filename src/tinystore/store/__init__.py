"""
Storage module for TinyStore.

This module provides the storage side of TinyStore:

    - SQLiteEngine: one SQLite connection with a text-only row view
    - Database: single-worker owner of an engine; serializes every access
    - RecordStore: one table per Record type, fenced by table name
    - BlobStore: path-keyed files, fenced by path

Why a single worker per database?
    - SQLite connections must not be used from several threads at once
    - One queue gives a total order over everything touching the handle
    - Failures stay local to the operation that caused them
"""

from tinystore.store.blob import BlobStore
from tinystore.store.db import Database, QueryResult
from tinystore.store.engine import SQLiteEngine, quote_identifier, quote_literal, select_statement
from tinystore.store.table import LoadResult, RecordStore

__all__ = [
    "BlobStore",
    "Database",
    "LoadResult",
    "QueryResult",
    "RecordStore",
    "SQLiteEngine",
    "quote_identifier",
    "quote_literal",
    "select_statement",
]
