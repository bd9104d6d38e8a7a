"""
api/main.py -- FastAPI application assembly for the StudyShala backend.

Run with:  python main.py serve
           uvicorn asgi:app --reload

Middleware stack (outermost to innermost, exactly as listed in
_middleware_stack()):
  1. OriginGateMiddleware -- rejects requests from origins not on the allow-list
  2. CORSMiddleware       -- adds CORS headers (credentials allowed) for allowed origins
  3. SessionMiddleware    -- decodes/encodes the signed studyshala.sid cookie
  4. SlowAPIMiddleware    -- enforces per-route rate limits from api.limiter
  5. log_requests         -- one log line per request with its outcome
  6. catch_unhandled      -- turns unexpected exceptions into a logged, generic 500
                             while the CORS headers can still be added

Every request ends in one of three tagged outcomes (core.errors.Outcome):
handled by a route, not_found (no route matched), or error (the boundary in
api/boundary.py produced the response).

Lifespan handles startup (logging, DB engine, stores, purge task) and
shutdown (cancel purge task, dispose engine) symmetrically. Service handles
live on app.state; nothing is opened at import time.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.sessions import SessionMiddleware

from api.boundary import catch_unhandled, register_exception_handlers
from api.cors import OriginGateMiddleware, OriginPolicy
from api.limiter import limiter
from api.models import HealthResponse
from api.routes.admin import router as admin_router
from api.routes.auth import router as auth_router
from api.routes.faculty import router as faculty_router
from api.routes.student import router as student_router
from auth.sessions import SessionStore
from auth.store import UserStore
from core.config import SESSION_COOKIE_NAME, Settings, get_settings
from core.database import connect
from core.errors import Outcome
from core.logs import configure_logging
from core.process import install_loop_handler

logger = logging.getLogger("studyshala.api")

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval_seconds: float) -> None:
    """Delete expired sessions every interval_seconds.

    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and ends the loop. A failed purge is logged and retried on
    the next tick.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(app.state.session_store.purge_expired)
        except Exception:
            logger.exception("Session purge failed")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open every shared resource on startup and release it on shutdown.

    Startup order:
      1. Logging -- so everything after it is recorded.
      2. Engine, then the stores built on it.
      3. Purge task last -- references app.state.session_store.
    """
    settings: Settings = app.state.settings
    log_path = configure_logging(settings.log_dir)
    install_loop_handler(asyncio.get_running_loop())
    logger.info("StudyShala API starting (environment=%s, logs=%s)", settings.environment, log_path)

    engine = connect(settings.database_url)
    app.state.engine = engine
    app.state.user_store = UserStore(engine)
    app.state.session_store = SessionStore(engine, ttl_seconds=settings.session_ttl_seconds)
    logger.info("Database connected")
    if not app.state.user_store.has_users():
        logger.warning("No accounts exist yet. Create one with: python main.py create-user --role admin")

    app.state.session_store.purge_expired()
    app.state.purge_task = asyncio.create_task(_purge_loop(app, settings.session_purge_interval_seconds))

    yield

    app.state.purge_task.cancel()
    with suppress(asyncio.CancelledError):
        await app.state.purge_task
    engine.dispose()
    logger.info("StudyShala API shutdown complete")


# ---------------------------------------------------------------------------
# Request logging
# ---------------------------------------------------------------------------


async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        ms = (time.perf_counter() - start) * 1000
        logger.info("%s %s 500 %.1fms outcome=%s", request.method, request.url.path, ms, Outcome.ERROR.value)
        raise
    ms = (time.perf_counter() - start) * 1000
    if response.status_code >= 500:
        outcome = Outcome.ERROR
    elif getattr(request.state, "unmatched", False):
        outcome = Outcome.NOT_FOUND
    else:
        outcome = Outcome.HANDLED
    logger.info(
        "%s %s %d %.1fms outcome=%s %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        outcome.value,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Health endpoint
#
# No auth and no rate limit: load balancers and uptime monitors call it.
# ---------------------------------------------------------------------------

health_router = APIRouter()


@health_router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return liveness, the deployment environment and the server time."""
    timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return HealthResponse(environment=request.app.state.settings.environment, timestamp=timestamp)


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def _middleware_stack(settings: Settings) -> list[Middleware]:
    """The ordered request pipeline, outermost first."""
    policy = OriginPolicy(settings.allowed_origins)
    return [
        Middleware(OriginGateMiddleware, policy=policy),
        Middleware(
            CORSMiddleware,
            allow_origins=list(policy.allowed_origins),
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization"],
            max_age=3600,
        ),
        Middleware(
            SessionMiddleware,
            secret_key=settings.session_secret,
            session_cookie=SESSION_COOKIE_NAME,
            max_age=settings.session_ttl_seconds,
            same_site=settings.cookie_same_site,
            https_only=settings.is_production,
        ),
        Middleware(SlowAPIMiddleware),
        Middleware(BaseHTTPMiddleware, dispatch=log_requests),
        Middleware(BaseHTTPMiddleware, dispatch=catch_unhandled),
    ]


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the ASGI application for settings (defaults to get_settings())."""
    settings = settings or get_settings()
    app = FastAPI(
        title="StudyShala API",
        description="Session-authenticated REST API for students, faculty and administrators.",
        version=VERSION,
        lifespan=lifespan,
        middleware=_middleware_stack(settings),
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None,
        openapi_url=None if settings.is_production else "/openapi.json",
    )
    app.state.settings = settings
    # SlowAPIMiddleware looks for app.state.limiter by convention.
    app.state.limiter = limiter

    register_exception_handlers(app)

    app.include_router(health_router, prefix="/api")
    app.include_router(auth_router, prefix="/api", tags=["Auth"])
    app.include_router(faculty_router, prefix="/api", tags=["Faculty"])
    app.include_router(student_router, prefix="/api", tags=["Student"])
    app.include_router(admin_router, prefix="/api", tags=["Admin"])
    return app


app = create_app()
