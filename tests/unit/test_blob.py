"""
Unit tests for the path-keyed BlobStore.

Tests cover:
- Model, JSON and byte round trips
- Missing and undecodable files
- Atomic replacement and delete semantics
- Per-path ordering and shared schedulers
"""

import threading
from pathlib import Path
from typing import Generator

import pytest
from pydantic import BaseModel

from models import WAIT, Owner
from tinystore.scheduler import TaskScheduler
from tinystore.store import BlobStore


class Settings(BaseModel):
    theme: str
    size: int = 12


@pytest.fixture
def blobs(temp_dir: Path) -> Generator[BlobStore, None, None]:
    """A blob store rooted in a temporary directory."""
    with BlobStore(temp_dir) as store:
        yield store


class TestRoundTrip:
    """Tests for writing then reading."""

    def test_model(self, blobs: BlobStore) -> None:
        assert blobs.put("settings.json", Settings(theme="dark")).result(timeout=WAIT) is True
        loaded = blobs.get("settings.json", model=Settings).result(timeout=WAIT)
        assert loaded == Settings(theme="dark")

    def test_nested_model(self, blobs: BlobStore) -> None:
        owner = Owner(name="ada", tags=["a", "b"])
        blobs.put("deep/er/owner.json", owner)
        assert blobs.get("deep/er/owner.json", model=Owner).result(timeout=WAIT) == owner

    def test_plain_json(self, blobs: BlobStore) -> None:
        blobs.put("data.json", {"a": [1, 2, None], "b": "x"})
        assert blobs.get("data.json").result(timeout=WAIT) == {"a": [1, 2, None], "b": "x"}

    def test_bytes(self, blobs: BlobStore, temp_dir: Path) -> None:
        payload = bytes(range(256))
        assert blobs.put("raw.bin", payload).result(timeout=WAIT) is True
        assert blobs.get_bytes("raw.bin").result(timeout=WAIT) == payload
        assert (temp_dir / "raw.bin").read_bytes() == payload

    def test_overwrite(self, blobs: BlobStore, temp_dir: Path) -> None:
        blobs.put("v.json", 1)
        blobs.put("v.json", 2)
        assert blobs.get("v.json").result(timeout=WAIT) == 2
        # No temporary files are left behind.
        assert [p.name for p in temp_dir.iterdir()] == ["v.json"]

    def test_absolute_path(self, blobs: BlobStore, temp_dir: Path) -> None:
        target = temp_dir / "abs.json"
        blobs.put(target, [1])
        assert blobs.get(str(target)).result(timeout=WAIT) == [1]


class TestMissingAndBroken:
    """Tests for files that cannot produce a value."""

    def test_missing(self, blobs: BlobStore) -> None:
        assert blobs.get("nope.json").result(timeout=WAIT) is None
        assert blobs.get_bytes("nope.bin").result(timeout=WAIT) is None
        assert blobs.exists("nope.json").result(timeout=WAIT) is False

    def test_undecodable(self, blobs: BlobStore, temp_dir: Path) -> None:
        (temp_dir / "bad.json").write_text("{not json")
        assert blobs.get("bad.json").result(timeout=WAIT) is None

    def test_wrong_shape(self, blobs: BlobStore) -> None:
        blobs.put("s.json", {"size": "large"})
        assert blobs.get("s.json", model=Settings).result(timeout=WAIT) is None

    def test_unserializable_value(self, blobs: BlobStore) -> None:
        assert blobs.put("x.json", object()).result(timeout=WAIT) is False
        assert blobs.exists("x.json").result(timeout=WAIT) is False


class TestDelete:
    """Tests for delete()."""

    def test_delete(self, blobs: BlobStore) -> None:
        blobs.put("d.json", 1)
        assert blobs.delete("d.json").result(timeout=WAIT) is True
        assert blobs.exists("d.json").result(timeout=WAIT) is False

    def test_delete_missing_succeeds(self, blobs: BlobStore) -> None:
        assert blobs.delete("ghost.json").result(timeout=WAIT) is True


class TestOrdering:
    """Tests for per-path fencing."""

    def test_same_path_in_order(self, blobs: BlobStore) -> None:
        """Reads observe every write issued before them."""
        for i in range(30):
            blobs.put("counter.json", i)
        assert blobs.get("counter.json").result(timeout=WAIT) == 29

    def test_relative_and_absolute_share_a_fence(self, blobs: BlobStore, temp_dir: Path) -> None:
        assert blobs.resolve("a/../same.json") == blobs.resolve(temp_dir / "same.json")

    def test_callbacks(self, blobs: BlobStore) -> None:
        seen: list[object] = []
        done = threading.Event()
        blobs.put("c.json", {"k": 1}, on_done=seen.append)
        blobs.get("c.json", on_done=seen.append)
        blobs.delete("c.json", on_done=lambda ok: (seen.append(ok), done.set()))
        assert done.wait(WAIT)
        assert seen == [True, {"k": 1}, True]

    def test_closed_store_reports_failure(self, temp_dir: Path) -> None:
        """After close, operations fail through the callback instead of hanging."""
        store = BlobStore(temp_dir)
        store.close()

        seen: list[object] = []
        assert store.put("x.json", {"k": 1}, on_done=seen.append).result(timeout=WAIT) is False
        assert store.get("x.json", on_done=seen.append).result(timeout=WAIT) is None
        assert seen == [False, None]
        assert not (temp_dir / "x.json").exists()

    def test_shared_scheduler_is_not_closed(self, temp_dir: Path) -> None:
        """A store only shuts down the scheduler it created."""
        with TaskScheduler(max_workers=2) as scheduler:
            store = BlobStore(temp_dir, scheduler=scheduler)
            store.put("x.json", 1).result(timeout=WAIT)
            store.close()
            assert scheduler.enqueue("k", lambda: 3).result(timeout=WAIT) == 3
