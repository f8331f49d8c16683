"""Bounded thread pool running ingestion jobs."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from threading import Lock
from typing import Any, Callable


class WorkerPool:
    """Shared executor for source runs that tracks what is still in flight."""

    def __init__(self, max_workers: int = 16) -> None:
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="harvest")
        self._in_flight: set[Future] = set()
        self._lock = Lock()

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        future = self._executor.submit(fn, *args)
        with self._lock:
            self._in_flight.add(future)
        future.add_done_callback(self._discard)
        return future

    def in_flight(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._in_flight.discard(future)


__all__ = ["WorkerPool"]
