"""
Completion contexts for TinyStore.

Every asynchronous operation hands its result to a completion context,
which decides the thread the caller's callback runs on. A completion
context is any object with ``submit(fn, *args)``, so every
``concurrent.futures.Executor`` qualifies.

Contexts:
    - main_context(): process-wide single-thread executor, the default
    - InlineContext: runs the callback on the thread that finished the work
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CompletionContext(Protocol):
    """Anything callbacks can be submitted to."""

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Any: ...


class InlineContext:
    """Runs callbacks immediately on the completing thread."""

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> None:
        fn(*args, **kwargs)


INLINE = InlineContext()

_main: ThreadPoolExecutor | None = None
_main_lock = threading.Lock()


def main_context() -> ThreadPoolExecutor:
    """
    Return the implied main context, creating it on first use.

    The main context has a single thread, and deliver() resolves a future
    only after its callback has run there. An on_done callback running on
    the main context must therefore never block on the result of another
    operation that also completes on the main context: that future cannot
    resolve until the blocking callback returns. Chain further work from
    the callback instead, or pass a different context (for example INLINE
    or a caller-owned executor) to the operation being waited on.
    """
    global _main
    with _main_lock:
        if _main is None:
            _main = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tinystore-main")
        return _main


def deliver(
    future: "Future[T]",
    result: T,
    on_done: Callable[[T], Any] | None = None,
    context: CompletionContext | None = None,
) -> None:
    """
    Hand a result to the caller.

    Runs ``on_done(result)`` on the completion context and resolves
    ``future`` afterwards, so waiting on the future also waits for the
    callback.

    With the default main context, do not call ``.result()`` on such a
    future from inside another main-context callback; see main_context().
    """

    def complete() -> None:
        try:
            if on_done is not None:
                on_done(result)
        except Exception:
            logger.exception("Completion callback %r failed", on_done)
        finally:
            future.set_result(result)

    target = context if context is not None else main_context()
    try:
        target.submit(complete)
    except RuntimeError:
        # Executor already shut down (interpreter exit).
        logger.debug("Completion context %r unavailable, completing inline", target)
        complete()
