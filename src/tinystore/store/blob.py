"""
Path-keyed blob storage for TinyStore.

A BlobStore reads and writes whole files: raw bytes, Pydantic models
(as JSON) or any JSON-compatible value. Operations on one path run in
submission order; operations on different paths run concurrently. No
database is involved, so there is no single-worker serializer here.

Semantics:
    - get/get_bytes of a missing or undecodable file yield None
    - put writes atomically (temporary file, then rename)
    - delete of a missing file succeeds
    - after close(), a store owning its scheduler reports every operation as failed
"""

import json
import logging
import os
import tempfile
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Callable, TypeVar

from pydantic import BaseModel, ValidationError

from tinystore.dispatch import CompletionContext, deliver
from tinystore.errors import BlobDeleteError, BlobError, BlobReadError, BlobWriteError
from tinystore.scheduler import TaskScheduler

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class BlobStore:
    """
    Filesystem storage fenced by path.

    Usage:
        blobs = BlobStore("./cache")
        blobs.put("settings.json", Settings(theme="dark"))
        settings = blobs.get("settings.json", model=Settings).result()
        blobs.close()
    """

    def __init__(
        self,
        root: str | Path | None = None,
        scheduler: TaskScheduler | None = None,
    ) -> None:
        """
        Initialize the blob store.

        Args:
            root: Directory relative paths resolve against (default: cwd)
            scheduler: Scheduler to fence on (default: a private one)
        """
        self.root = Path(root) if root is not None else Path.cwd()
        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler if scheduler is not None else TaskScheduler(name="tinystore-blob")

    def resolve(self, path: str | Path) -> Path:
        """Absolute path used both for I/O and as the fencing key."""
        path = Path(path)
        if not path.is_absolute():
            path = self.root / path
        return path.resolve()

    def close(self) -> None:
        """Wait for pending work and stop a privately owned scheduler."""
        if self._owns_scheduler:
            self.scheduler.shutdown()

    def __enter__(self) -> "BlobStore":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager."""
        self.close()

    # =========================================================================
    # Operations
    # =========================================================================

    def get(
        self,
        path: str | Path,
        model: type[M] | None = None,
        context: CompletionContext | None = None,
        on_done: Callable[[Any], Any] | None = None,
    ) -> Future:
        """
        Read a structured value.

        Args:
            path: File to read
            model: Pydantic model to validate into (default: plain JSON)

        Returns:
            Future of the value, or None if missing or undecodable
        """
        target = self.resolve(path)

        def work() -> Any:
            data = self._read(target)
            if data is None:
                return None
            try:
                if model is not None:
                    return model.model_validate_json(data)
                return json.loads(data)
            except (ValidationError, ValueError) as e:
                raise BlobReadError(path=str(target), underlying_error=str(e)) from e

        return self._schedule(target, "get", work, None, context, on_done)

    def get_bytes(
        self,
        path: str | Path,
        context: CompletionContext | None = None,
        on_done: Callable[[bytes | None], Any] | None = None,
    ) -> "Future[bytes | None]":
        """Read raw bytes, or None if the file is missing."""
        target = self.resolve(path)
        return self._schedule(target, "get_bytes", lambda: self._read(target), None, context, on_done)

    def put(
        self,
        path: str | Path,
        value: Any,
        context: CompletionContext | None = None,
        on_done: Callable[[bool], Any] | None = None,
    ) -> "Future[bool]":
        """
        Write a value, replacing the file.

        bytes are written as-is, Pydantic models as their JSON, anything
        else through json.dumps.
        """
        target = self.resolve(path)

        def work() -> bool:
            try:
                if isinstance(value, (bytes, bytearray)):
                    data = bytes(value)
                elif isinstance(value, BaseModel):
                    data = value.model_dump_json().encode("utf-8")
                else:
                    data = json.dumps(value).encode("utf-8")
            except (TypeError, ValueError) as e:
                raise BlobWriteError(path=str(target), underlying_error=str(e)) from e
            self._write(target, data)
            return True

        return self._schedule(target, "put", work, False, context, on_done)

    def delete(
        self,
        path: str | Path,
        context: CompletionContext | None = None,
        on_done: Callable[[bool], Any] | None = None,
    ) -> "Future[bool]":
        """Remove the file; a missing file counts as deleted."""
        target = self.resolve(path)

        def work() -> bool:
            try:
                target.unlink(missing_ok=True)
            except OSError as e:
                raise BlobDeleteError(path=str(target), underlying_error=str(e)) from e
            return True

        return self._schedule(target, "delete", work, False, context, on_done)

    def exists(
        self,
        path: str | Path,
        context: CompletionContext | None = None,
        on_done: Callable[[bool], Any] | None = None,
    ) -> "Future[bool]":
        """Whether a file exists at the path, after earlier work on it."""
        target = self.resolve(path)
        return self._schedule(target, "exists", target.is_file, False, context, on_done)

    # =========================================================================
    # Internal
    # =========================================================================

    def _read(self, target: Path) -> bytes | None:
        if not target.is_file():
            return None
        try:
            return target.read_bytes()
        except OSError as e:
            raise BlobReadError(path=str(target), underlying_error=str(e)) from e

    def _write(self, target: Path, data: bytes) -> None:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise BlobWriteError(path=str(target), underlying_error=str(e)) from e

    def _schedule(
        self,
        target: Path,
        operation: str,
        work: Callable[[], Any],
        failure: Any,
        context: CompletionContext | None,
        on_done: Callable[[Any], Any] | None,
    ) -> Future:
        outcome: Future = Future()
        started = threading.Event()

        def run() -> None:
            started.set()
            try:
                result = work()
            except BlobError as e:
                logger.warning("Blob %s failed: %s", operation, e)
                result = failure
            except Exception:
                logger.exception("Blob %s of %s failed unexpectedly", operation, target)
                result = failure
            deliver(outcome, result, on_done, context)

        def rejected(task: Future) -> None:
            # The scheduler failed the task without running it.
            if not started.is_set():
                logger.warning("Blob %s of %s was not run: %s", operation, target, task.exception())
                deliver(outcome, failure, on_done, context)

        self.scheduler.enqueue(str(target), run).add_done_callback(rejected)
        return outcome
