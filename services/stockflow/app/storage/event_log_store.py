"""Append-only audit table of every consumed event.

Rows are created once per dispatched event and never updated or deleted
here; retention belongs to whoever owns the database.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# ── DDL ──────────────────────────────────────────────────

EVENT_LOGS_DDL = """\
CREATE TABLE IF NOT EXISTS event_logs (
    id BIGSERIAL PRIMARY KEY,
    topic VARCHAR NOT NULL,
    event_type VARCHAR,
    store_id VARCHAR,
    stock_id VARCHAR,
    admin_email VARCHAR,
    payload JSONB NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS idx_event_logs_created
    ON event_logs (created_at DESC);
CREATE INDEX IF NOT EXISTS idx_event_logs_store
    ON event_logs (store_id, created_at DESC)
"""


async def ensure_event_log_table(db: AsyncSession) -> None:
    for stmt in EVENT_LOGS_DDL.strip().split(";"):
        stmt = stmt.strip()
        if stmt:
            await db.execute(text(stmt))
    await db.commit()


@dataclass(frozen=True)
class LogRecord:
    id: int
    topic: str
    event_type: str | None
    store_id: str | None
    stock_id: str | None
    admin_email: str | None
    payload: dict[str, Any]
    created_at: datetime | None


class EventLogStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def insert(
        self,
        topic: str,
        event_type: str | None,
        store_id: str | None,
        stock_id: str | None,
        admin_email: str | None,
        payload: dict[str, Any],
    ) -> None:
        """Write one row. Any database error propagates to the caller."""
        async with self._session_factory() as session:
            await session.execute(
                text("""
                    INSERT INTO event_logs
                        (topic, event_type, store_id, stock_id, admin_email, payload)
                    VALUES
                        (:topic, :event_type, :store_id, :stock_id, :admin_email, CAST(:payload AS JSONB))
                """),
                {
                    "topic": topic,
                    "event_type": event_type,
                    "store_id": store_id,
                    "stock_id": stock_id,
                    "admin_email": admin_email,
                    "payload": json.dumps(payload, ensure_ascii=False, default=str),
                },
            )
            await session.commit()

    async def list_recent(self, limit: int = 100, store_id: str | None = None) -> list[LogRecord]:
        """Newest first."""
        where = ""
        params: dict[str, Any] = {"limit": limit}
        if store_id is not None:
            where = "WHERE store_id = :store_id"
            params["store_id"] = store_id
        async with self._session_factory() as session:
            result = await session.execute(
                text(f"""
                    SELECT id, topic, event_type, store_id, stock_id, admin_email, payload, created_at
                    FROM event_logs
                    {where}
                    ORDER BY created_at DESC, id DESC
                    LIMIT :limit
                """),
                params,
            )
            return [
                LogRecord(
                    id=row.id,
                    topic=row.topic,
                    event_type=row.event_type,
                    store_id=row.store_id,
                    stock_id=row.stock_id,
                    admin_email=row.admin_email,
                    payload=row.payload if isinstance(row.payload, dict) else json.loads(row.payload),
                    created_at=row.created_at,
                )
                for row in result.fetchall()
            ]
