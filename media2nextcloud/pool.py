import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, List, Optional


class WorkerPool:
    """
    Fixed-size thread pool with submit + join.

    Jobs are drawn from the executor's shared queue. A job that raises is
    logged and counted; it never affects the other jobs. join() is the phase
    barrier: it returns only once every submitted job has finished.
    """

    def __init__(self, size: int, name: str = "worker"):
        if size < 1:
            raise ValueError(f"Pool size must be at least 1, got {size}")
        self.size = size
        self.name = name
        self._executor: Optional[ThreadPoolExecutor] = ThreadPoolExecutor(
            max_workers=size, thread_name_prefix=name
        )
        self._futures: List[Future] = []
        self.errors = 0

    def submit(self, fn: Callable[..., Any], *args, **kwargs) -> Future:
        if self._executor is None:
            raise RuntimeError(f"Pool '{self.name}' has already been joined")
        future = self._executor.submit(fn, *args, **kwargs)
        self._futures.append(future)
        return future

    def cancel(self) -> int:
        """Drops jobs that have not started yet. Returns how many were dropped."""
        return sum(1 for future in self._futures if future.cancel())

    def join(self) -> List[Any]:
        """
        Waits for all submitted jobs and shuts the pool down.
        Returns job results in submission order; failed jobs contribute None.
        """
        if self._executor is None:
            return []

        wait(self._futures)
        self._executor.shutdown(wait=True)
        self._executor = None

        results = []
        for future in self._futures:
            if future.cancelled():
                results.append(None)
                continue
            exc = future.exception()
            if exc is not None:
                self.errors += 1
                logging.error(f"Job in pool '{self.name}' failed: {exc!r}")
                results.append(None)
            else:
                results.append(future.result())
        return results

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.join()
