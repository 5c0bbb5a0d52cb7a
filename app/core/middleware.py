"""HTTP middleware for request correlation and access logging.

Every request/response pair carries a request id (taken from the incoming
header or generated) that is bound to the logging context for the lifetime
of the request. Completion and failure are logged with method, route, status
and duration; the client address is logged only as a hash.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from app.adapters.rate_limit.fixed_window import hash_identity
from app.core.config import settings
from app.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)


async def request_id_middleware(request: Request, call_next) -> Response:
    """Bind a request id, time the request, and log its outcome.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with ``X-Request-ID`` (configurable)
            and ``X-Request-Duration-ms`` headers added.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    client_hash = hash_identity(request.client.host)[:16] if request.client else None

    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    except Exception as exc:
        logger.error(
            "http.request.failed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "client_hash": client_hash,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                "error_type": type(exc).__name__,
            },
        )
        raise
    else:
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "http.request.completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "client_hash": client_hash,
                "duration_ms": round(duration_ms, 2),
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
