from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from app.api import activity, health
from app.core.config import settings
from app.core.database import AsyncSessionLocal, dispose_database, init_database
from app.core.logging import setup_logging
from app.core.redis_client import close_redis, get_redis
from app.metrics.catalog import build_registry
from app.runtime import build_runtime

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)
    logger.info("stockflow_startup", topics=settings.KAFKA_TOPICS)

    await init_database()
    redis_client = get_redis()
    registry = build_registry()
    app.state.metrics_registry = registry
    app.state.redis = redis_client
    app.state.session_factory = AsyncSessionLocal

    try:
        runtime = build_runtime(settings, registry, redis_client, AsyncSessionLocal)
        # SubscriptionError propagates: no broker, no service
        await runtime.start()
        app.state.runtime = runtime
        try:
            yield
        finally:
            await runtime.stop()
    finally:
        await close_redis()
        await dispose_database()
        logger.info("stockflow_shutdown")


app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION, lifespan=lifespan)
app.include_router(health.router)
app.include_router(activity.router)


def run() -> None:
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000)
