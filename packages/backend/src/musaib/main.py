"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (database, Redis, the portal
runtime and its cache listener). Middleware, exception handlers and
routers are all registered here.

Tests pass a prebuilt PortalRuntime to create_app(): the in-process test
transport doesn't run the lifespan, and the test owns the runtime's
teardown anyway.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from musaib import __version__
from musaib.api import api_router
from musaib.backend import Backend
from musaib.config import Settings, settings as default_settings
from musaib.portal import portal_router
from musaib.portal.dependencies import GuardRedirect, GuardWait
from musaib.portal.runtime import PortalRuntime
from musaib.realtime.pubsub import (
    close_redis,
    init_redis,
    listen_cache_events,
    publish_cache_event,
)
from musaib.stores.cache import CacheRegistry

logger = structlog.get_logger()


def build_runtime(settings: Settings) -> PortalRuntime:
    """Backend + shared cache wired to the Redis broadcaster."""
    backend = Backend(settings)
    caches = CacheRegistry(broadcaster=publish_cache_event)
    return PortalRuntime(backend, settings, caches)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: FastAPI lifespan replaces on_event("startup") / on_event("shutdown").
    Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    settings: Settings = app.state.settings
    logger.info(
        "musaib.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    redis_ok = True
    try:
        await init_redis(settings.redis_url)
        logger.info("musaib.redis_connected", url=settings.redis_url)
    except Exception as e:
        redis_ok = False
        logger.warning("musaib.redis_unavailable", error=str(e))
        # Redis is optional, the portal works on one process without it

    owns_runtime = getattr(app.state, "runtime", None) is None
    if owns_runtime:
        app.state.runtime = build_runtime(settings)
    runtime: PortalRuntime = app.state.runtime

    listener: Optional[asyncio.Task] = None
    if redis_ok:
        listener = asyncio.create_task(listen_cache_events(runtime.caches))

    yield

    logger.info("musaib.shutdown")

    if listener is not None:
        listener.cancel()
        try:
            await listener
        except asyncio.CancelledError:
            pass

    if owns_runtime:
        await runtime.close()
        await runtime.backend.close()
        app.state.runtime = None

    await close_redis()


def create_app(
    runtime: Optional[PortalRuntime] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Build and return the FastAPI application."""
    settings = settings or (runtime.settings if runtime else default_settings)

    app = FastAPI(
        title="MuSAIB Portal",
        description="Mutual benefit society portal — members, services and requests",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.runtime = runtime

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → PortalSession → handler

    from musaib.middleware.portal_session import PortalSessionMiddleware
    from musaib.middleware.rate_limit import RateLimitMiddleware
    from musaib.middleware.request_id import RequestIdMiddleware
    from musaib.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(
        PortalSessionMiddleware,
        cookie_name=settings.session_cookie_name,
        secure=settings.site_url.startswith("https://"),
    )
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Guard outcomes ───────────────────────────────────────

    @app.exception_handler(GuardRedirect)
    async def guard_redirect(request: Request, exc: GuardRedirect):
        return RedirectResponse(exc.location, status_code=303)

    @app.exception_handler(GuardWait)
    async def guard_wait(request: Request, exc: GuardWait):
        return JSONResponse(status_code=202, content={"status": "loading"})

    app.include_router(api_router)
    app.include_router(portal_router)

    return app


# Default app instance (used by uvicorn: musaib.main:app)
app = create_app()
