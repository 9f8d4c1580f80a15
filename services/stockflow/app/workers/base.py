import asyncio
from typing import Any, Awaitable, Callable

import structlog

logger = structlog.get_logger("stockflow.workers")


class BaseWorker:
    def __init__(self, name: str):
        self.name = name
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        logger.info("worker_started", worker=self.name)
        await self.run()

    async def run(self):
        raise NotImplementedError

    def shutdown(self):
        logger.info("worker_shutting_down", worker=self.name)
        self._running = False

    async def process_with_retry(
        self,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        max_retries: int = 3,
        delay: float | None = None,
    ):
        """Await ``func`` up to ``max_retries`` times.

        Sleeps ``delay`` seconds between attempts, or 2**attempt when no
        fixed delay is given. The last failure is re-raised.
        """
        for attempt in range(max_retries):
            try:
                return await func(*args)
            except Exception as e:
                if attempt == max_retries - 1:
                    logger.error(
                        "worker_task_failed",
                        worker=self.name,
                        task=func.__name__,
                        attempts=max_retries,
                        error=str(e),
                    )
                    raise
                wait = delay if delay is not None else 2 ** attempt
                logger.warning(
                    "worker_task_retry",
                    worker=self.name,
                    task=func.__name__,
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    error=str(e),
                )
                await asyncio.sleep(wait)
