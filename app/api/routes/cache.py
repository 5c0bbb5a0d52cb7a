from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.dependencies import get_cache_service
from app.core.rate_limit import RateLimit
from app.services.cache_service import CacheService

router = APIRouter(tags=["Cache"])


@router.get(
    "/cache/stats",
    dependencies=[Depends(RateLimit(limit=30, window_ms=60_000))],
)
async def cache_stats(cache: CacheService = Depends(get_cache_service)) -> dict:
    """Process-local cache counters (hits, misses, errors, tracked keys)."""

    return cache.stats()
