"""aiokafka consumer for the stock/store topics under one consumer group."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, AsyncIterator

import structlog
from aiokafka import AIOKafkaConsumer
from aiokafka.errors import KafkaError

from app.core.errors import SubscriptionError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ConsumedMessage:
    topic: str
    partition: int
    offset: int
    value: bytes | None


class KafkaEventConsumer:
    def __init__(
        self,
        bootstrap_servers: str,
        group_id: str,
        topics: list[str],
        client_id: str = "stockflow",
        auto_offset_reset: str = "earliest",
        **kwargs: Any,
    ) -> None:
        self.topics = list(topics)
        self.group_id = group_id
        self._consumer = AIOKafkaConsumer(
            *self.topics,
            bootstrap_servers=bootstrap_servers,
            group_id=group_id,
            client_id=client_id,
            auto_offset_reset=auto_offset_reset,
            enable_auto_commit=True,
            **kwargs,
        )

    async def start(self) -> None:
        """Connect and subscribe. Raises SubscriptionError; callers must not retry."""
        try:
            await self._consumer.start()
        except (KafkaError, OSError) as e:
            logger.error("kafka_subscribe_failed", topics=self.topics, group_id=self.group_id, error=str(e))
            raise SubscriptionError(self.topics, str(e)) from e
        logger.info("kafka_consumer_started", topics=self.topics, group_id=self.group_id)

    async def stop(self) -> None:
        await self._consumer.stop()
        logger.info("kafka_consumer_stopped", group_id=self.group_id)

    async def __aiter__(self) -> AsyncIterator[ConsumedMessage]:
        async for record in self._consumer:
            yield ConsumedMessage(
                topic=record.topic,
                partition=record.partition,
                offset=record.offset,
                value=record.value,
            )

    async def __aenter__(self) -> "KafkaEventConsumer":
        await self.start()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.stop()
