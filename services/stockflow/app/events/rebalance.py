"""Rebalance event production.

Refills every stock row below the threshold and announces each refill on
stock-events. `stockflow-rebalance` runs one pass; scheduling it is left to cron.
"""
from __future__ import annotations

import asyncio

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import AsyncSessionLocal, dispose_database
from app.core.logging import setup_logging
from app.core.redis_client import close_redis, get_redis
from app.events.models import EventKind, Topic
from app.events.publisher import EventPublisher
from app.metrics.catalog import build_registry
from app.metrics.ledger import CounterLedger

logger = structlog.get_logger(__name__)

REBALANCE_SQL = text("""
    UPDATE stocks SET quantity = :quantity
    WHERE quantity < :threshold
    RETURNING id, name
""")


async def rebalance_low_stock(
    session: AsyncSession,
    publisher: EventPublisher,
    threshold: int = 10,
    quantity: int = 20,
) -> int:
    result = await session.execute(REBALANCE_SQL, {"quantity": quantity, "threshold": threshold})
    rows = result.fetchall()
    await session.commit()

    for row in rows:
        await publisher.publish(
            Topic.STOCK_EVENTS.value,
            {
                "event": EventKind.REBALANCE.value,
                "id": row.id,
                "name": row.name,
                "quantity": quantity,
            },
            key="rebalance",
        )
        logger.info("stock_rebalanced", stock_id=row.id, name=row.name, quantity=quantity)
    return len(rows)


async def run_rebalance() -> int:
    """One rebalance pass with connections built from settings."""
    ledger = CounterLedger(build_registry(), get_redis())
    publisher = EventPublisher.from_settings(settings.KAFKA_BOOTSTRAP_SERVERS, settings.KAFKA_CLIENT_ID, ledger)
    await publisher.start()
    try:
        async with AsyncSessionLocal() as session:
            return await rebalance_low_stock(
                session,
                publisher,
                threshold=settings.LOW_STOCK_THRESHOLD,
                quantity=settings.REBALANCE_QUANTITY,
            )
    finally:
        await publisher.stop()
        await close_redis()
        await dispose_database()


def main() -> None:
    setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)
    rows = asyncio.run(run_rebalance())
    logger.info("rebalance_completed", rows=rows)
