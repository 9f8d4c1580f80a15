from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy import text

router = APIRouter()

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


@router.get("/health/live")
async def liveness():
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness(request: Request):
    checks = {"database": "unhealthy", "redis": "unhealthy"}
    try:
        async with request.app.state.session_factory() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception:
        pass

    try:
        await request.app.state.redis.ping()
        checks["redis"] = "healthy"
    except Exception:
        pass

    status = "healthy" if all(value == "healthy" for value in checks.values()) else "unhealthy"
    return {"status": status, "checks": checks}


@router.get("/metrics")
async def metrics(request: Request):
    body = request.app.state.metrics_registry.render_prometheus()
    return PlainTextResponse(body, media_type=PROMETHEUS_CONTENT_TYPE)
