"""Rate limiter wrapper around pyrate-limiter."""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING

from pyrate_limiter import (  # type: ignore[attr-defined]
    BucketFullException,
    InMemoryBucket,
    Limiter,
    Rate,
)

if TYPE_CHECKING:
    from types import TracebackType

# Longest sleep between bucket checks while waiting for a permit
_POLL_MS = 10

_original_excepthook = threading.excepthook

# Leaker threads whose next AssertionError is expected. Tracked by ident so
# an unrelated thread with the same name is never silenced.
_suppressed_thread_idents: set[int] = set()
_suppressed_lock = threading.Lock()


def _custom_excepthook(args: threading.ExceptHookArgs) -> None:
    """Swallow pyrate-limiter's leaker AssertionError once the bucket is disposed.

    The leaker thread can assert on an empty bucket list while it is exiting.
    Only threads registered by RateLimiter.close(), and only AssertionError,
    are suppressed, once per thread.
    """
    from graphloader.core.logging import get_logger

    thread_ident = args.thread.ident if args.thread else None
    with _suppressed_lock:
        if thread_ident is not None and thread_ident in _suppressed_thread_idents and args.exc_type is AssertionError:
            _suppressed_thread_idents.discard(thread_ident)
            get_logger(__name__).debug(
                "Suppressed rate limiter leaker shutdown error",
                thread_ident=thread_ident,
                thread_name=args.thread.name if args.thread else None,
            )
            return

    _original_excepthook(args)


threading.excepthook = _custom_excepthook


def _spacing(permits_per_second: int) -> Rate:
    """Rate that spreads permits evenly over each second.

    A one-second window of N permits lets a burst of N through and then
    stalls for the rest of the second. A window of one permit every
    1000/N ms paces admissions steadily instead. Above 1000 permits per
    second, where a millisecond window would hold more than one permit,
    the smallest whole-millisecond window is used.
    """
    burst = max(1, -(-permits_per_second // 1000))
    window_ms = max(1, round(burst * 1000 / permits_per_second))
    return Rate(burst, window_ms)


class RateLimiter:
    """Token-bucket admission gate for write attempts.

    Each partition owns one limiter; one permit admits one batch. A denied
    attempt is not retried, the caller records it as a failed write.

    Example:
        with RateLimiter("follow_0", permits_per_second=100) as limiter:
            if limiter.try_acquire(timeout_ms=1000):
                writer.write_edges(batch)
            else:
                error_sink.record_failure(statement)
    """

    def __init__(self, name: str, permits_per_second: int) -> None:
        """Initialize rate limiter.

        Args:
            name: Bucket key, used in logs.
            permits_per_second: Steady-state admissions per second. 0 admits
                nothing; every try_acquire waits out its timeout and fails.

        Raises:
            ValueError: If permits_per_second is negative.
        """
        if permits_per_second < 0:
            msg = f"permits_per_second must not be negative, got {permits_per_second}"
            raise ValueError(msg)

        self.name = name
        self._permits_per_second = permits_per_second
        self._lock = threading.Lock()
        self._admitted = 0
        self._denied = 0
        self._closed = False

        self._bucket: InMemoryBucket | None = None
        self._limiter: Limiter | None = None
        if permits_per_second > 0:
            self._bucket = InMemoryBucket([_spacing(permits_per_second)])
            # No max_delay: a full bucket raises at once and try_acquire does the waiting
            self._limiter = Limiter(self._bucket, raise_when_fail=True)

    @property
    def permits_per_second(self) -> int:
        return self._permits_per_second

    def _take(self) -> bool:
        assert self._limiter is not None
        try:
            self._limiter.try_acquire(self.name)
        except BucketFullException:
            return False
        return True

    def try_acquire(self, timeout_ms: int) -> bool:
        """Wait up to ``timeout_ms`` for a permit.

        Args:
            timeout_ms: Longest acceptable wait in milliseconds.

        Returns:
            True if admitted, False if no permit became available in time.

        Raises:
            RuntimeError: If the limiter has been closed.
        """
        with self._lock:
            if self._closed:
                raise RuntimeError(f"Rate limiter {self.name!r} is closed")

            deadline = time.monotonic() + max(timeout_ms, 0) / 1000
            if self._limiter is None:
                # Nothing will ever be admitted; honour the wait and deny
                time.sleep(max(timeout_ms, 0) / 1000)
                self._denied += 1
                return False

            while not self._take():
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self._denied += 1
                    return False
                time.sleep(min(remaining, _POLL_MS / 1000))

            self._admitted += 1
            return True

    def acquire(self) -> None:
        """Block until a permit is available.

        Raises:
            RuntimeError: If the limiter is closed or admits nothing.
        """
        if self._permits_per_second == 0:
            raise RuntimeError(f"Rate limiter {self.name!r} admits nothing; use try_acquire")
        while not self.try_acquire(timeout_ms=1000):
            pass

    def get_stats(self) -> dict[str, int]:
        """Admission counts since creation."""
        with self._lock:
            return {
                "permits_per_second": self._permits_per_second,
                "admitted": self._admitted,
                "denied": self._denied,
            }

    def close(self) -> None:
        """Close the rate limiter and release resources."""
        self._closed = True
        if self._limiter is None or self._bucket is None:
            return

        leaker = self._limiter.bucket_factory._leaker
        if leaker is not None and leaker.is_alive() and leaker.ident is not None:
            with _suppressed_lock:
                _suppressed_thread_idents.add(leaker.ident)

        # Deregister the bucket from the leaker thread before waiting on it
        self._limiter.dispose(self._bucket)
        if leaker is not None and leaker.is_alive():
            leaker.join(timeout=0.05)

        self._limiter = None
        self._bucket = None

    def __enter__(self) -> RateLimiter:
        """Enter context manager."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit context manager."""
        self.close()
