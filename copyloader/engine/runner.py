"""Parallel partition task execution.

``PartitionTaskRunner`` runs one task per partition on a thread pool and
retries a failed task from scratch up to ``max_attempts`` times. Tasks only
share the ``SuccessCounter``; its value is read once, after every task has
settled.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, List, Optional, TypeVar

from copyloader.exceptions import PartitionUploadError
from copyloader.utils.logging_context import get_logging_context

T = TypeVar("T")


class SuccessCounter:
    """Thread-safe counter of successful task attempts. Never decremented."""

    def __init__(self, name: str = "copySuccess"):
        self.name = name
        self._value = 0
        self._lock = threading.Lock()

    def add(self, amount: int = 1) -> None:
        if amount < 0:
            raise ValueError("SuccessCounter only increments")
        with self._lock:
            self._value += amount

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


@dataclass
class TaskRunSummary(Generic[T]):
    """Outcome of running every partition task."""

    results: Dict[int, T] = field(default_factory=dict)
    failures: Dict[int, PartitionUploadError] = field(default_factory=dict)
    attempts: Dict[int, int] = field(default_factory=dict)
    duration: float = 0.0

    @property
    def failed_partitions(self) -> List[int]:
        return sorted(self.failures)

    def first_failure(self) -> Optional[PartitionUploadError]:
        if not self.failures:
            return None
        return self.failures[min(self.failures)]


class PartitionTaskRunner:
    """Runs ``task(partition_id, attempt)`` for every partition in parallel."""

    def __init__(self, max_workers: Optional[int] = None, max_attempts: int = 1):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_workers = max_workers
        self.max_attempts = max_attempts

    def _run_with_retries(
        self, task: Callable[[int, int], T], partition_id: int, attempts: Dict[int, int]
    ) -> T:
        attempt = 0
        while True:
            attempt += 1
            attempts[partition_id] = attempt
            try:
                return task(partition_id, attempt)
            except Exception as e:
                if attempt >= self.max_attempts:
                    raise PartitionUploadError(partition_id, attempt, e) from e
                get_logging_context().warning(
                    "Partition task failed, retrying",
                    partition=partition_id,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error_type=type(e).__name__,
                    error=str(e),
                )

    def run(self, num_partitions: int, task: Callable[[int, int], T]) -> TaskRunSummary[T]:
        """Run every task and wait for all of them, successful or not."""
        summary: TaskRunSummary[T] = TaskRunSummary()
        if num_partitions == 0:
            return summary

        ctx = get_logging_context()
        max_workers = self.max_workers or min(32, num_partitions)
        start = time.perf_counter()

        ctx.info(
            f"Starting {num_partitions} partition task(s) with {max_workers} worker(s)",
            max_attempts=self.max_attempts,
        )

        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="copyloader") as pool:
            future_to_partition = {
                pool.submit(self._run_with_retries, task, partition_id, summary.attempts): (
                    partition_id
                )
                for partition_id in range(num_partitions)
            }

            for future in as_completed(future_to_partition):
                partition_id = future_to_partition[future]
                try:
                    summary.results[partition_id] = future.result()
                except PartitionUploadError as e:
                    summary.failures[partition_id] = e
                    ctx.error(
                        "Partition task gave up",
                        partition=partition_id,
                        attempts=e.attempts,
                        error_type=type(e.original_error).__name__,
                        error=str(e.original_error),
                    )

        summary.duration = time.perf_counter() - start
        return summary
