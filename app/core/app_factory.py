from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (components, middleware, handlers, routers) so
tests can build isolated apps. The store connection is created once per app
and injected into the rate limiter and the cache service explicitly.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.adapters.rate_limit.fixed_window import FixedWindowRateLimiter
from app.adapters.store.base import AbstractStoreConnection
from app.adapters.store.factory import create_store_connection
from app.api.routes import cache_router, health_router
from app.core.config import Settings, settings as default_settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.services.cache_service import CacheService

logger = logging.getLogger(__name__)


def create_app(
    app_settings: Settings | None = None,
    *,
    store: AbstractStoreConnection | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to build from; defaults to the global settings.
        store: Pre-built store connection (tests); otherwise created from
            ``app_settings.redis`` when the app starts.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        connection = store or create_store_connection(cfg.redis)
        app.state.store = connection
        app.state.rate_limiter = FixedWindowRateLimiter(connection)
        app.state.cache_service = CacheService(
            connection,
            cfg.app_env,
            app_name=cfg.app.name,
            default_ttl_seconds=cfg.cache.default_ttl_seconds,
        )
        logger.info(
            "app.started",
            extra={
                "environment": cfg.app_env,
                "store_backend": type(connection).__name__,
                "cache_namespace": app.state.cache_service.namespace,
                "rate_limit_enabled": cfg.rate_limit.enabled,
            },
        )
        try:
            yield
        finally:
            await connection.close()
            logger.info("app.stopped")

    app = FastAPI(
        title="Taskflow Edge API",
        description=(
            "Request admission (per-route fixed-window rate limiting) and "
            "namespaced response caching backed by a shared Redis store."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(cache_router, prefix="/v1")
    app.include_router(health_router)

    return app
