from typing import Iterable, List

from src.admission.rate_limiter import BUCKET_IDLE_SECONDS, SWEEP_INTERVAL_SECONDS, RateLimiter
from src.shared.logging import get_logger
from src.workers.base_worker import BaseWorker

logger = get_logger(__name__)


class BucketSweeperWorker(BaseWorker):
    """Periodically drops idle rate-limit buckets so memory stays bounded."""

    def __init__(
        self,
        limiters: Iterable[RateLimiter],
        interval: float = SWEEP_INTERVAL_SECONDS,
        idle_seconds: float = BUCKET_IDLE_SECONDS,
    ):
        super().__init__("bucket_sweeper", interval=interval)
        self.limiters: List[RateLimiter] = list(limiters)
        self.idle_seconds = idle_seconds

    def sweep_once(self) -> int:
        removed = sum(limiter.sweep(self.idle_seconds) for limiter in self.limiters)
        if removed:
            logger.info("rate_limit_buckets_swept", removed=removed)
        return removed

    async def execute(self) -> None:
        self.sweep_once()
