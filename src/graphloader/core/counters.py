"""Process-wide batch counters shared by all partitions."""

from __future__ import annotations

from threading import Lock


class LoadCounters:
    """Thread-safe success/failure counters.

    Each completed write attempt increments exactly one of the two
    counters; throttled batches count as failures.

    Usage:
        counters = LoadCounters()
        counters.add_success()
        counters.add_failure(2)
        counters.snapshot()  # {"batch_success": 1, "batch_failure": 2}
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._batch_success = 0
        self._batch_failure = 0

    def add_success(self, count: int = 1) -> None:
        with self._lock:
            self._batch_success += count

    def add_failure(self, count: int = 1) -> None:
        with self._lock:
            self._batch_failure += count

    @property
    def batch_success(self) -> int:
        with self._lock:
            return self._batch_success

    @property
    def batch_failure(self) -> int:
        with self._lock:
            return self._batch_failure

    def snapshot(self) -> dict[str, int]:
        """Consistent copy of both counters."""
        with self._lock:
            return {
                "batch_success": self._batch_success,
                "batch_failure": self._batch_failure,
            }
