"""Process-wide redis.asyncio client.

Shared by the activity cache, counter checkpoints and restoration.
REDIS_SOCKET_TIMEOUT_SECONDS should stay below WRITE_TIMEOUT_SECONDS.
"""
from __future__ import annotations

import redis.asyncio as redis

from app.core.config import settings

_client: redis.Redis | None = None


def create_redis(url: str | None = None) -> redis.Redis:
    return redis.from_url(
        url or settings.REDIS_URL,
        decode_responses=True,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
        health_check_interval=settings.REDIS_HEALTH_CHECK_INTERVAL_SECONDS,
    )


def get_redis() -> redis.Redis:
    global _client
    if _client is None:
        _client = create_redis()
    return _client


async def close_redis() -> None:
    global _client
    client, _client = _client, None
    if client is not None:
        await client.aclose()
