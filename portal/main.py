from __future__ import annotations

import pathlib
from contextlib import asynccontextmanager
from time import perf_counter
from typing import Optional
import logging

import httpx
from fastapi import FastAPI, Request
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.gzip import GZipMiddleware
from starlette.middleware.sessions import SessionMiddleware

from prometheus_client import make_asgi_app
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from portal.core.config import Settings, get_settings
from portal.core.container import RequestScope
from portal.core.errors import install_error_handlers
from portal.core.http_client import create_gitlab_http_client
from portal.metrics import ACTIVE_SESSIONS
from portal.routers import auth as auth_router
from portal.routers import resources as resources_router
from portal.wiring import build_container


logger = logging.getLogger(__name__)

BASE_DIR = pathlib.Path(__file__).resolve().parent


def _configure_logging(settings: Settings) -> None:
    root_level = getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=root_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    gitlab_level = getattr(logging, (settings.GITLAB_LOG_LEVEL or "WARNING").upper(), logging.WARNING)
    logging.getLogger("portal.services.gitlab").setLevel(gitlab_level)


def _content_security_policy(settings: Settings) -> str:
    cdn = "https://cdn.jsdelivr.net/npm/bootstrap@5.3.3/"
    return "; ".join([
        "default-src 'self'",
        f"script-src 'self' {cdn}",
        f"style-src 'self' {cdn}",
        f"img-src 'self' data: https://secure.gravatar.com/avatar/ {settings.GITLAB_BASE_URL.rstrip('/')}/",
        "frame-ancestors 'none'",
    ])


def create_app(settings: Optional[Settings] = None, http_client: Optional[httpx.AsyncClient] = None) -> FastAPI:
    settings = settings or get_settings()
    _configure_logging(settings)

    http_client = http_client or create_gitlab_http_client(settings)
    container = build_container(settings, http_client)
    logger.debug("registered services: %s", ", ".join(container.names()))
    store = container.resolve("session_store")
    ACTIVE_SESSIONS.set_function(lambda: len(store))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            logger.info("portal started (environment=%s, gitlab=%s)", settings.ENVIRONMENT, settings.GITLAB_BASE_URL)
            yield
        finally:
            await http_client.aclose()

    app = FastAPI(title="GitLab OAuth Portal", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.container = container

    # общий на все маршруты счётчик запросов с одного IP; 429 проходит через middleware ниже
    limiter = Limiter(
        key_func=get_remote_address,
        application_limits=[settings.RATE_LIMIT],
        enabled=settings.RATE_LIMIT_ENABLED,
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    csp = _content_security_policy(settings)

    @app.middleware("http")
    async def _request_scope(request: Request, call_next):
        scope = RequestScope()
        request.state.scope = scope
        start = perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request %s: %s %s failed", scope.id, request.method, request.url.path)
            raise
        finally:
            scope.close()
        logger.info(
            "request %s: %s %s -> %s (%.1f ms)",
            scope.id,
            request.method,
            request.url.path,
            response.status_code,
            (perf_counter() - start) * 1000,
        )
        return response

    @app.middleware("http")
    async def _security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("Content-Security-Policy", csp)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        if settings.is_production:
            response.headers.setdefault("Strict-Transport-Security", "max-age=15552000; includeSubDomains")
        return response

    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SESSION_SECRET,
        session_cookie=settings.SESSION_NAME,
        max_age=settings.SESSION_MAX_AGE_S,
        # lax: cookie должна приходить на redirect с GitLab обратно в /auth/callback
        same_site="lax",
        https_only=settings.is_production,
    )

    app.mount("/metrics", make_asgi_app())
    app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")

    install_error_handlers(app, production=settings.is_production)

    # Routers
    app.include_router(auth_router.router)
    app.include_router(resources_router.router)

    # Meta
    @app.get("/api/health", tags=["meta"])
    async def api_health():
        return {
            "ok": True,
            "base_url": settings.GITLAB_BASE_URL,
            "environment": settings.ENVIRONMENT,
        }

    return app
