from __future__ import annotations

import json
from typing import Any

import redis.asyncio as redis


class RecentActivityCache:
    """Most-recent-first event snapshots per store, capped at ``limit`` entries.

    Push and trim go out in one MULTI/EXEC so the list is never observed
    above the cap.
    """

    def __init__(self, redis_client: redis.Redis, limit: int = 100, key_prefix: str = "activity"):
        if limit < 1:
            raise ValueError("limit must be positive")
        self._redis = redis_client
        self.limit = limit
        self.key_prefix = key_prefix

    def key_for(self, store_id: str) -> str:
        return f"{self.key_prefix}:{store_id}"

    async def push(self, store_id: str, entry: dict[str, Any]) -> None:
        key = self.key_for(store_id)
        data = json.dumps(entry, ensure_ascii=False, default=str)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.lpush(key, data)
            pipe.ltrim(key, 0, self.limit - 1)
            await pipe.execute()

    async def recent(self, store_id: str, count: int = 50) -> list[dict[str, Any]]:
        raw_entries = await self._redis.lrange(self.key_for(store_id), 0, max(count, 1) - 1)
        entries: list[dict[str, Any]] = []
        for raw in raw_entries:
            try:
                entries.append(json.loads(raw))
            except (TypeError, json.JSONDecodeError):
                entries.append({"error": "Invalid JSON", "raw": raw})
        return entries
