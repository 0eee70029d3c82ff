"""
Pytest configuration and fixtures for TinyStore tests.

This module provides shared fixtures used across unit and integration
tests: temporary directories, schedulers and opened databases.
"""

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from models import WAIT
from tinystore.scheduler import TaskScheduler
from tinystore.store import Database


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def db_path(temp_dir: Path) -> Path:
    """Path of a database file that does not exist yet."""
    return temp_dir / "store.db"


@pytest.fixture
def scheduler() -> Generator[TaskScheduler, None, None]:
    """A scheduler with enough workers to run keys concurrently."""
    with TaskScheduler(max_workers=4, name="test") as s:
        yield s


@pytest.fixture
def database(db_path: Path) -> Generator[Database, None, None]:
    """An opened file-backed database."""
    db = Database(db_path)
    assert db.configure().result(timeout=WAIT) is True
    yield db
    db.close()


@pytest.fixture
def sample_config_yaml() -> str:
    """Return a store configuration YAML for testing."""
    return """
database_path: ./app.db
blob_root: ./blobs
scheduler_workers: 2
pragmas:
  foreign_keys: "ON"
  busy_timeout: 1000
log_level: debug
"""
