"""FastAPI dependency providers for the shared core components.

The store connection, rate limiter and cache service are built once in the
application lifespan and stored on ``app.state``; routes reach them through
these providers instead of module globals.
"""

from __future__ import annotations

from fastapi import Request

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.store.base import AbstractStoreConnection
from app.services.cache_service import CacheService


def get_store(request: Request) -> AbstractStoreConnection:
    return request.app.state.store


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    return request.app.state.rate_limiter


def get_cache_service(request: Request) -> CacheService:
    return request.app.state.cache_service
