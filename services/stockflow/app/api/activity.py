from dataclasses import asdict

from fastapi import APIRouter, Query, Request

from app.core.config import settings
from app.storage.activity_cache import RecentActivityCache
from app.storage.event_log_store import EventLogStore

router = APIRouter(tags=["activity"])


@router.get("/activity/{store_id}")
async def store_activity(
    request: Request,
    store_id: str,
    count: int = Query(default=settings.ACTIVITY_READ_LIMIT, ge=1, le=settings.ACTIVITY_LOG_LIMIT),
):
    cache = RecentActivityCache(
        request.app.state.redis,
        limit=settings.ACTIVITY_LOG_LIMIT,
        key_prefix=settings.ACTIVITY_KEY_PREFIX,
    )
    entries = await cache.recent(store_id, count)
    return {"store_id": store_id, "count": len(entries), "entries": entries}


@router.get("/event-logs")
async def event_logs(
    request: Request,
    limit: int = Query(default=100, ge=1, le=1000),
    store_id: str | None = Query(default=None),
):
    records = await EventLogStore(request.app.state.session_factory).list_recent(limit=limit, store_id=store_id)
    return {"items": [asdict(r) for r in records], "count": len(records)}
