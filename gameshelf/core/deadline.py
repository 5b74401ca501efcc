"""Bounded-time calls on a private thread pool."""

from __future__ import annotations

import concurrent.futures
import threading
from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")

DeadlineExceeded = concurrent.futures.TimeoutError


class DeadlineRunner:
    """
    Runs blocking calls with a wall-clock limit.

    The limit covers the call itself: it starts when a pool thread picks the
    call up, so callers queued behind a busy pool are not charged for the
    wait.  Waiting for a thread is bounded separately by the same limit.
    A call that overruns is abandoned: the caller gets ``DeadlineExceeded``
    and the worker thread finishes (or times out on its own socket timeout)
    in the background.
    """

    def __init__(self, max_workers: int = 8, name: str = "gameshelf-deadline") -> None:
        self.max_workers = max(1, max_workers)
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix=name,
        )

    def call(self, timeout: float, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        started = threading.Event()

        def run() -> T:
            started.set()
            return func(*args, **kwargs)

        future = self._executor.submit(run)
        if not started.wait(timeout):
            # Still queued: cancel() succeeds unless a thread grabbed it just now
            if future.cancel():
                raise DeadlineExceeded(f"no worker free within {timeout:.1f}s")
            started.wait()
        try:
            return future.result(timeout=timeout)
        except DeadlineExceeded:
            future.cancel()
            raise

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
