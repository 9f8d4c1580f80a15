from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

import structlog
from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError

from app.core.errors import PublishError
from app.metrics.catalog import KAFKA_MESSAGES_PRODUCED_TOTAL
from app.metrics.ledger import CounterLedger

logger = structlog.get_logger(__name__)


def _serialize(event: dict[str, Any]) -> bytes:
    return json.dumps(event, ensure_ascii=False, default=str).encode("utf-8")


class EventPublisher:
    """Producer side of the event contract.

    Every successful send also counts toward kafka_messages_produced_total.
    """

    def __init__(self, producer: AIOKafkaProducer, ledger: CounterLedger):
        self._producer = producer
        self._ledger = ledger

    @classmethod
    def from_settings(cls, bootstrap_servers: str, client_id: str, ledger: CounterLedger) -> "EventPublisher":
        return cls(AIOKafkaProducer(bootstrap_servers=bootstrap_servers, client_id=client_id), ledger)

    async def start(self) -> None:
        await self._producer.start()

    async def stop(self) -> None:
        await self._producer.stop()

    async def publish(self, topic: str, event: dict[str, Any], key: str | None = None) -> dict[str, Any]:
        body = dict(event)
        body.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        try:
            await self._producer.send_and_wait(
                topic,
                value=_serialize(body),
                key=key.encode("utf-8") if key is not None else None,
            )
        except KafkaError as e:
            raise PublishError(topic, str(e)) from e

        labels = {"admin_email": body.get("admin_email") or "unknown"}
        if body.get("store_id") is not None:
            labels["store_id"] = body["store_id"]
        await self._ledger.record(KAFKA_MESSAGES_PRODUCED_TOTAL, labels)
        logger.debug("event_published", topic=topic, event_type=body.get("event") or body.get("type"))
        return body
