from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.adapters.store.base import AbstractStoreConnection
from app.core.dependencies import get_store
from app.core.errors import StoreAppError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness probe.

    Returns:
        dict: ``{"status": "ok"}`` while the process is serving requests.
    """

    return {"status": "ok"}


@router.get("/health/ready")
async def readiness_check(
    store: AbstractStoreConnection = Depends(get_store),
) -> JSONResponse:
    """Readiness probe: one round trip to the shared store.

    The API keeps serving when the store is down (rate limiting fails open,
    cache misses), so this only reports degradation to the load balancer.
    """

    try:
        await store.ping()
    except StoreAppError as exc:
        logger.warning("health.store_unreachable", extra={"error_code": exc.code})
        return JSONResponse(status_code=503, content={"status": "degraded", "store": "unavailable"})

    return JSONResponse(status_code=200, content={"status": "ok", "store": "ok"})
