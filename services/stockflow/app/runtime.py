"""Startup orchestrator for the pipeline's long-running tasks.

Broker subscription happens in start() and is fatal. Dispatcher, counter
restoration and gauge refresh then each run in their own supervised task
so a crash in one is logged and leaves the others running.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable

import redis.asyncio as redis
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import Settings
from app.core.observability import MetricsRegistry
from app.events.consumer import KafkaEventConsumer
from app.events.dispatcher import EventDispatcher
from app.metrics.gauge_refresh import GaugeRefreshJob
from app.metrics.restoration import CounterRestorer
from app.storage.activity_cache import RecentActivityCache
from app.storage.event_log_store import EventLogStore

logger = structlog.get_logger(__name__)


async def supervised(name: str, coro: Awaitable[None]) -> None:
    try:
        await coro
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.exception("background_task_crashed", task=name)


class PipelineRuntime:
    def __init__(
        self,
        consumer: KafkaEventConsumer,
        dispatcher: EventDispatcher,
        restorer: CounterRestorer,
        gauge_job: GaugeRefreshJob,
    ):
        self.consumer = consumer
        self.dispatcher = dispatcher
        self.restorer = restorer
        self.gauge_job = gauge_job
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def tasks(self) -> dict[str, asyncio.Task]:
        return dict(self._tasks)

    async def start(self) -> None:
        await self.consumer.start()
        for name, coro in (
            ("event_dispatcher", self.dispatcher.run(self.consumer)),
            ("counter_restore", self.restorer.start()),
            ("gauge_refresh", self.gauge_job.start()),
        ):
            self._tasks[name] = asyncio.create_task(supervised(name, coro), name=name)
        logger.info("pipeline_started", tasks=list(self._tasks))

    async def stop(self) -> None:
        self.restorer.shutdown()
        self.gauge_job.shutdown()
        for task in self._tasks.values():
            task.cancel()
        await asyncio.gather(*self._tasks.values(), return_exceptions=True)
        self._tasks.clear()
        await self.consumer.stop()
        logger.info("pipeline_stopped")


def build_runtime(
    settings: Settings,
    registry: MetricsRegistry,
    redis_client: redis.Redis,
    session_factory: async_sessionmaker[AsyncSession],
) -> PipelineRuntime:
    consumer = KafkaEventConsumer(
        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
        group_id=settings.KAFKA_GROUP_ID,
        topics=settings.KAFKA_TOPICS,
        client_id=settings.KAFKA_CLIENT_ID,
        auto_offset_reset=settings.KAFKA_AUTO_OFFSET_RESET,
    )
    dispatcher = EventDispatcher(
        log_store=EventLogStore(session_factory),
        activity_cache=RecentActivityCache(
            redis_client,
            limit=settings.ACTIVITY_LOG_LIMIT,
            key_prefix=settings.ACTIVITY_KEY_PREFIX,
        ),
        write_timeout_seconds=settings.WRITE_TIMEOUT_SECONDS,
    )
    restorer = CounterRestorer(
        redis_client,
        registry,
        warmup_seconds=settings.RESTORE_WARMUP_SECONDS,
        max_attempts=settings.RESTORE_MAX_ATTEMPTS,
        retry_delay_seconds=settings.RESTORE_RETRY_DELAY_SECONDS,
    )
    gauge_job = GaugeRefreshJob(
        session_factory,
        registry,
        interval_seconds=settings.GAUGE_REFRESH_INTERVAL_SECONDS,
    )
    return PipelineRuntime(consumer, dispatcher, restorer, gauge_job)
