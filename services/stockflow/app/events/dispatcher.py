"""Event dispatcher: decode → route → trace → audit row + activity entry.

Messages are handled one at a time, each awaited to completion before the
next is read, which keeps per-partition order. Nothing that goes wrong
with a single message (bad JSON, unknown topic, failed write) stops the
loop.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Mapping, Protocol

import structlog

from app.core.errors import MalformedEventError
from app.events.handlers import handle_stock_alert, handle_stock_event, handle_store_event
from app.events.models import Event, Topic, decode_event
from app.storage.activity_cache import RecentActivityCache
from app.storage.event_log_store import EventLogStore

logger = structlog.get_logger(__name__)

Handler = Callable[[Event], None]

DEFAULT_HANDLERS: dict[str, Handler] = {
    Topic.STOCK_EVENTS.value: handle_stock_event,
    Topic.STOCK_ALERTS.value: handle_stock_alert,
    Topic.STORE_EVENTS.value: handle_store_event,
}


class Message(Protocol):
    topic: str
    value: bytes | str | None


class EventDispatcher:
    def __init__(
        self,
        log_store: EventLogStore,
        activity_cache: RecentActivityCache,
        handlers: Mapping[str, Handler] | None = None,
        write_timeout_seconds: float | None = 10.0,
    ):
        self._log_store = log_store
        self._activity = activity_cache
        self._handlers = dict(handlers if handlers is not None else DEFAULT_HANDLERS)
        self._write_timeout = write_timeout_seconds

    @property
    def topics(self) -> list[str]:
        return list(self._handlers)

    async def run(self, messages: AsyncIterator[Message]) -> None:
        logger.info("event_dispatcher_started", topics=self.topics)
        try:
            async for message in messages:
                try:
                    await self.dispatch(message.topic, message.value)
                except Exception:
                    logger.exception("event_dispatch_failed", topic=message.topic)
        except asyncio.CancelledError:
            logger.info("event_dispatcher_stopped")
            raise

    async def dispatch(self, topic: str, raw: bytes | str | None) -> bool:
        """Process one message. Returns True when it reached the write path."""
        try:
            event, payload = decode_event(raw)
        except MalformedEventError as e:
            logger.error("event_decode_failed", topic=topic, error=e.message, raw=e.raw)
            return False

        handler = self._handlers.get(topic)
        if handler is None:
            logger.warning("unknown_topic", topic=topic, event_type=event.kind)
            return False

        try:
            handler(event)
        except Exception:
            logger.exception("event_handler_failed", topic=topic, event_type=event.kind)

        await self._write_log(topic, event, payload)
        await self._write_activity(topic, event, payload)
        return True

    async def _guarded(self, awaitable):
        if self._write_timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=self._write_timeout)

    async def _write_log(self, topic: str, event: Event, payload: dict[str, Any]) -> None:
        try:
            await self._guarded(
                self._log_store.insert(
                    topic=topic,
                    event_type=event.kind,
                    store_id=event.explicit_store_id(),
                    stock_id=event.stock_identifier(topic),
                    admin_email=event.admin_identifier(),
                    payload=payload,
                )
            )
        except Exception:
            logger.exception("event_log_write_failed", topic=topic, event_type=event.kind)

    async def _write_activity(self, topic: str, event: Event, payload: dict[str, Any]) -> None:
        store_id = event.store_identifier()
        if store_id is None:
            logger.warning("event_missing_store_id", topic=topic, payload=payload)
            return
        entry = {
            "topic": topic,
            **payload,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            await self._guarded(self._activity.push(store_id, entry))
        except Exception:
            logger.exception("activity_cache_write_failed", topic=topic, store_id=store_id)
