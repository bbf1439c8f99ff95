"""
Concurrency utilities.

State owned by the orchestrator is touched from three kinds of threads: the
caller's, the fetch pool's completion callbacks and the push client's network
loop. `synchronized` funnels every mutation through the instance's `_lock`.
`gather` runs independent queries side by side.
"""

from __future__ import annotations

from concurrent.futures import FIRST_EXCEPTION, Executor, wait
from functools import wraps
from typing import Callable, TypeVar

T = TypeVar("T")


def synchronized(func: Callable) -> Callable:
    """Decorator that acquires `self._lock` if present on the instance.

    If no `_lock` attribute exists on `self`, the function is executed
    without locking. Use a reentrant lock when synchronized methods call
    each other.
    """

    @wraps(func)
    def _wrapped(*args, **kwargs):
        self = args[0] if args else None
        lock = getattr(self, "_lock", None)
        if lock is None:
            return func(*args, **kwargs)
        with lock:
            return func(*args, **kwargs)

    return _wrapped


def gather(executor: Executor, *calls: Callable[[], T]) -> tuple[T, ...]:
    """Run ``calls`` concurrently on ``executor`` and return their results in order.

    Fail-fast: the first exception is re-raised as soon as it surfaces and
    calls that have not started yet are cancelled. Calls already running are
    left to finish; their results are discarded.
    """
    futures = [executor.submit(call) for call in calls]
    done, pending = wait(futures, return_when=FIRST_EXCEPTION)
    for future in futures:
        if future in done and future.exception() is not None:
            for other in pending:
                other.cancel()
            raise future.exception()
    return tuple(future.result() for future in futures)
