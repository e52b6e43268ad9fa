"""
Rate Limiting
Process-local fixed-window token buckets, one per client key.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Tuple

from src.shared.logging import get_logger

logger = get_logger(__name__)

SWEEP_INTERVAL_SECONDS = 5 * 60
BUCKET_IDLE_SECONDS = 10 * 60


@dataclass
class TokenBucket:
    tokens: int
    capacity: int
    next_refill_at: float
    last_refill_at: float
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


class RateLimiter:
    """
    Fixed-window token bucket rate limiter.

    Algorithm:
    1. A key's bucket is created on first use with ``capacity`` tokens
    2. Each allowed request consumes 1 token
    3. Once ``interval`` has elapsed the bucket is reset to full; there is
       no gradual refill
    4. If the bucket is empty, reject until the next reset

    Buckets are never expired on read; ``sweep()`` (run periodically by the
    bucket sweeper worker) drops buckets that have been idle for
    ``BUCKET_IDLE_SECONDS``.
    """

    def __init__(
        self,
        capacity: int,
        interval_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            capacity: Requests allowed per window
            interval_seconds: Window length
            clock: Monotonic time source (injectable for tests)
        """
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.capacity = capacity
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._buckets: Dict[str, TokenBucket] = {}
        # guards bucket creation and sweep deletion only
        self._lock = threading.Lock()

    @property
    def retry_after_seconds(self) -> int:
        return int(self.interval_seconds)

    def _bucket_for(self, key: str) -> TokenBucket:
        bucket = self._buckets.get(key)
        if bucket is not None:
            return bucket
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                now = self._clock()
                bucket = TokenBucket(
                    tokens=self.capacity,
                    capacity=self.capacity,
                    next_refill_at=now + self.interval_seconds,
                    last_refill_at=now,
                )
                self._buckets[key] = bucket
            return bucket

    def allow(self, key: str) -> Tuple[bool, int]:
        """
        Attempt to take one token for ``key``.

        Returns:
            (allowed, remaining tokens); remaining is 0 on rejection
        """
        bucket = self._bucket_for(key)
        with bucket.lock:
            now = self._clock()
            if now >= bucket.next_refill_at:
                bucket.tokens = bucket.capacity
                bucket.next_refill_at = now + self.interval_seconds
                bucket.last_refill_at = now
            if bucket.tokens > 0:
                bucket.tokens -= 1
                return True, bucket.tokens
            return False, 0

    def sweep(self, idle_seconds: float = BUCKET_IDLE_SECONDS) -> int:
        """Delete buckets whose last refill is older than ``idle_seconds``. Returns the count removed."""
        removed = 0
        with self._lock:
            now = self._clock()
            for key in list(self._buckets):
                bucket = self._buckets[key]
                with bucket.lock:
                    if now - bucket.last_refill_at > idle_seconds:
                        del self._buckets[key]
                        removed += 1
        if removed:
            logger.debug("rate_limit_buckets_swept", removed=removed, remaining=len(self))
        return removed

    def __len__(self) -> int:
        return len(self._buckets)
