"""
Concurrency-Bounded Job Runner

Runs independent task thunks on a small fixed pool of worker threads.
Workers pull the next pending index from a shared cursor, so a fast worker
picks up new work while a slow one is still busy. Failures are caught per task
and returned as tagged results; the runner itself never raises.
"""

import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from reconciler.configs import get_logger
from reconciler.configs.constants import DEFAULT_CONCURRENCY

logger = get_logger("storage.gc.runner")


@dataclass
class TaskResult:
    """Outcome of one task: its value, or the exception it raised."""

    index: int
    ok: bool
    value: Any = None
    error: Optional[BaseException] = None


def run_with_concurrency(
    tasks: Sequence[Callable[[], Any]],
    concurrency: int = DEFAULT_CONCURRENCY,
) -> list[TaskResult]:
    """
    Run tasks with at most `concurrency` in flight.

    Args:
        tasks: Zero-argument callables
        concurrency: Worker pool size (values below 1 run sequentially)

    Returns:
        One TaskResult per task, in input order regardless of completion order
    """
    if not tasks:
        return []

    results: list[Optional[TaskResult]] = [None] * len(tasks)
    next_index = 0
    index_lock = threading.Lock()

    def claim() -> Optional[int]:
        nonlocal next_index
        with index_lock:
            if next_index >= len(tasks):
                return None
            index = next_index
            next_index += 1
            return index

    def worker() -> None:
        while True:
            index = claim()
            if index is None:
                return
            try:
                results[index] = TaskResult(index=index, ok=True, value=tasks[index]())
            except Exception as e:
                logger.warning(f"Task {index} failed: {e}")
                results[index] = TaskResult(index=index, ok=False, error=e)

    worker_count = min(max(concurrency, 1), len(tasks))
    threads = [
        threading.Thread(target=worker, name=f"reconciler-worker-{i}", daemon=True)
        for i in range(worker_count)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    return [result for result in results if result is not None]
