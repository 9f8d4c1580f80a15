from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from app.core.config import settings

engine = create_async_engine(settings.DATABASE_URL, echo=False, pool_pre_ping=True)
AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def init_database() -> None:
    """Create the tables this service owns (idempotent)."""
    from app.storage.event_log_store import ensure_event_log_table

    async with AsyncSessionLocal() as session:
        await ensure_event_log_table(session)


async def dispose_database() -> None:
    await engine.dispose()
