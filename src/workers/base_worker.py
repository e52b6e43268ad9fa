import asyncio
import time
from abc import ABC, abstractmethod
from typing import Optional

from src.shared.logging import get_logger

logger = get_logger(__name__)


class BaseWorker(ABC):
    """Base class for in-process background workers driven by the app lifespan."""

    def __init__(self, worker_name: str, interval: float = 60):
        self.worker_name = worker_name
        self.interval = interval
        self.is_running = False
        self.shutdown_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    def start(self) -> asyncio.Task:
        """Schedule ``run()`` on the current loop; idempotent per loop."""
        loop = asyncio.get_running_loop()
        if self._task is None or self._task.done() or self._task.get_loop() is not loop:
            self.shutdown_event = asyncio.Event()
            self._task = asyncio.create_task(self.run(), name=self.worker_name)
        return self._task

    async def shutdown(self):
        """Graceful shutdown of worker."""
        self.is_running = False
        self.shutdown_event.set()
        if self._task is not None and self._task.get_loop() is asyncio.get_running_loop():
            await self._task
            self._task = None
        logger.info("worker_shutdown", worker=self.worker_name)

    async def run(self):
        """Main worker loop."""
        self.is_running = True
        logger.info("worker_started", worker=self.worker_name, interval=self.interval)

        while self.is_running and not self.shutdown_event.is_set():
            try:
                # Wait for next interval, but wake up immediately on shutdown
                await asyncio.wait_for(self.shutdown_event.wait(), timeout=self.interval)
                break
            except asyncio.TimeoutError:
                pass
            except asyncio.CancelledError:
                logger.info("worker_cancelled", worker=self.worker_name)
                raise

            start_time = time.perf_counter()
            try:
                await self.execute()
            except Exception:
                logger.exception("worker_failed", worker=self.worker_name)
                continue
            logger.debug(
                "worker_completed",
                worker=self.worker_name,
                duration=round(time.perf_counter() - start_time, 4),
            )

        self.is_running = False
        logger.info("worker_stopped", worker=self.worker_name)

    @abstractmethod
    async def execute(self) -> None:
        """Execute the worker's main task. Must be implemented by subclasses."""
