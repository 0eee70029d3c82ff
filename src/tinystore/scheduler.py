"""
Key-fenced task scheduler for TinyStore.

The scheduler admits units of work from any number of threads and runs
them on a worker pool. Work sharing a key runs one at a time in
submission order; work with different keys runs concurrently.

Ordering:
    For two enqueues with the same key, the first task finishes (and its
    on_done runs) before the second task starts. Nothing is promised
    across keys.

Failure:
    A task that raises stores the exception in its own future. Later
    tasks with the same key still run. After shutdown() every task that
    has not started fails with RuntimeError, including work enqueued later.

Implementation:
    The scheduler remembers only the future of the newest task per key.
    A new task is chained onto that future and replaces it, so admission
    is O(1) regardless of how much work is pending.
"""

import logging
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Hashable

logger = logging.getLogger(__name__)


class TaskScheduler:
    """
    Admission layer fencing work by key.

    One scheduler is meant to be shared by every RecordStore of a process
    so that all operations on one table form a single FIFO lane.

    Usage:
        scheduler = TaskScheduler()
        scheduler.enqueue("notes", lambda: write_note(...))
        scheduler.enqueue("notes", lambda: read_notes(...))  # runs second
        scheduler.shutdown()

    Or use as context manager:
        with TaskScheduler() as scheduler:
            ...
    """

    def __init__(self, max_workers: int | None = None, name: str = "tinystore") -> None:
        """
        Initialize the scheduler.

        Args:
            max_workers: Pool size (None = ThreadPoolExecutor default)
            name: Thread name prefix of the pool
        """
        self.name = name
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=f"{name}-scheduler",
        )
        self._tails: dict[Hashable, Future] = {}
        self._lock = threading.Lock()
        self._shut_down = False
        self._rejections: deque[tuple[Future, BaseException]] = deque()
        self._local = threading.local()

    def enqueue(
        self,
        key: Hashable,
        work: Callable[[], Any],
        on_done: Callable[[Future], Any] | None = None,
    ) -> Future:
        """
        Admit work fenced by key.

        Args:
            key: Fencing key; same-key work runs in submission order
            work: Zero-argument callable, run on a pool thread
            on_done: Optional callback receiving the task's future once it finishes

        Returns:
            Future holding work's return value or exception
        """
        future: Future = Future()
        if on_done is not None:
            future.add_done_callback(on_done)

        with self._lock:
            admitted = not self._shut_down
            if admitted:
                previous = self._tails.get(key)
                self._tails[key] = future

        if not admitted:
            self._reject(future, RuntimeError(f"Scheduler {self.name} is shut down"))
            return future

        future.add_done_callback(lambda f: self._release(key, f))

        if previous is None:
            self._submit(key, work, future)
        else:
            previous.add_done_callback(lambda _: self._submit(key, work, future))
        return future

    def pending_keys(self) -> list[Hashable]:
        """Keys with unfinished work."""
        with self._lock:
            return list(self._tails)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work; with wait=True, block until the pool is idle."""
        with self._lock:
            self._shut_down = True
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "TaskScheduler":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager."""
        self.shutdown()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _submit(self, key: Hashable, work: Callable[[], Any], future: Future) -> None:
        try:
            self._executor.submit(self._run, key, work, future)
        except RuntimeError as e:
            logger.debug("Scheduler %s rejected task for key %r: %s", self.name, key, e)
            self._reject(future, e)

    def _run(self, key: Hashable, work: Callable[[], Any], future: Future) -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            result = work()
        except Exception as e:
            logger.warning("Task for key %r failed: %s", key, e, exc_info=True)
            future.set_exception(e)
        else:
            future.set_result(result)

    def _reject(self, future: Future, error: BaseException) -> None:
        # Failing a future starts its successor's _submit, which fails too.
        # Drain those in a loop on this thread instead of recursing per task.
        self._rejections.append((future, error))
        if getattr(self._local, "draining", False):
            return
        self._local.draining = True
        try:
            while True:
                try:
                    rejected, reason = self._rejections.popleft()
                except IndexError:
                    break
                rejected.set_exception(reason)
        finally:
            self._local.draining = False

    def _release(self, key: Hashable, future: Future) -> None:
        with self._lock:
            if self._tails.get(key) is future:
                del self._tails[key]
