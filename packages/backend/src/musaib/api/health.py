"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running and its
dependencies are reachable. The database is required; Redis is optional,
so a missing Redis is reported but does not make the portal unhealthy.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text

from musaib import __version__
from musaib.portal.dependencies import get_runtime
from musaib.portal.runtime import PortalRuntime
from musaib.realtime.pubsub import get_redis, redis_available

router = APIRouter()


@router.get("/health")
async def health_check(runtime: PortalRuntime = Depends(get_runtime)):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        async with runtime.backend.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    if redis_available():
        try:
            await get_redis().ping()
            checks["redis"] = "ok"
        except Exception as e:
            checks["redis"] = f"error: {e}"
    else:
        checks["redis"] = "disabled"

    status = "healthy" if checks["database"] == "ok" else "degraded"
    return {"status": status, "sessions": len(runtime), **checks}
