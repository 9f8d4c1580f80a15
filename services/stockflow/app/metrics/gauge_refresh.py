"""Periodic recompute of store_stock_quantity from the relational store.

Each tick replaces the whole gauge: reset every label combination, then
set one sample per store that still has stock rows.
"""
from __future__ import annotations

import asyncio
import time

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.observability import MetricsRegistry
from app.metrics.catalog import STOCK_DB_QUERY_DURATION_SECONDS, STORE_STOCK_QUANTITY
from app.workers.base import BaseWorker

logger = structlog.get_logger(__name__)

STOCK_TOTALS_SQL = text("""
    SELECT store_id, SUM(quantity) AS total_quantity
    FROM stocks
    GROUP BY store_id
""")

STORE_NAMES_SQL = text("SELECT id, name FROM stores")


class GaugeRefreshJob(BaseWorker):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: MetricsRegistry,
        interval_seconds: float = 60.0,
    ):
        super().__init__("gauge_refresh")
        self._session_factory = session_factory
        self._registry = registry
        self.interval_seconds = interval_seconds

    async def run(self) -> None:
        while self._running:
            try:
                await self.refresh_once()
            except Exception:
                logger.exception("gauge_refresh_failed", gauge=STORE_STOCK_QUANTITY)
            await asyncio.sleep(self.interval_seconds)

    async def refresh_once(self) -> int:
        """Query both tables first so a failed query leaves the old samples in place."""
        started = time.perf_counter()
        async with self._session_factory() as session:
            totals = (await session.execute(STOCK_TOTALS_SQL)).fetchall()
            names = {
                str(row.id): row.name
                for row in (await session.execute(STORE_NAMES_SQL)).fetchall()
            }
        self._registry.set(STOCK_DB_QUERY_DURATION_SECONDS, None, time.perf_counter() - started)

        self._registry.reset_all(STORE_STOCK_QUANTITY)
        for row in totals:
            store_id = str(row.store_id)
            self._registry.set(
                STORE_STOCK_QUANTITY,
                {"store_id": store_id, "store_name": names.get(store_id, "Unknown")},
                float(row.total_quantity or 0),
            )
        logger.debug("gauge_refreshed", gauge=STORE_STOCK_QUANTITY, stores=len(totals))
        return len(totals)
