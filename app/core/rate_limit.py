"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiter into the HTTP layer. Limiting is opt-in
per route: a route is limited only when it declares a ``RateLimit``
dependency, which carries that route's policy.

Usage:
    @router.get("/tasks", dependencies=[Depends(RateLimit(limit=30, window_ms=60_000))])
    async def list_tasks(): ...

The client identity is the peer network address and the route is the matched
route template (``/tasks/{task_id}``), so all ids of one route share a counter.
"""

from __future__ import annotations

import logging

from fastapi import Request

from app.adapters.rate_limit.base import RateLimitDecision, RateLimitPolicy
from app.core.config import settings
from app.core.dependencies import get_rate_limiter
from app.core.errors import RateLimitExceededAppError

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


def resolve_route_path(request: Request) -> str:
    """Return the matched route template, falling back to the raw URL path."""

    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def resolve_client_identity(request: Request) -> str:
    return request.client.host if request.client else UNKNOWN_CLIENT


def build_rejection_error(decision: RateLimitDecision) -> RateLimitExceededAppError:
    """Translate a rejected decision into the 429 error raised to FastAPI."""

    next_valid = decision.next_valid_request_at
    return RateLimitExceededAppError(
        code="rate_limit_exceeded",
        message="Too many requests, please try again later.",
        details={
            "status_code": 429,
            "limit": decision.limit or 0,
            "current": decision.current,
            "remaining_requests": 0,
            "next_valid_request_time": next_valid.isoformat() if next_valid else "",
            "retry_after": decision.retry_after_seconds or 0,
        },
    )


class RateLimit:
    """Per-route admission dependency.

    Args:
        limit: Max requests per window; defaults to ``RATE_LIMIT_DEFAULT_LIMIT``.
        window_ms: Window length; defaults to ``RATE_LIMIT_DEFAULT_WINDOW_MS``.

    Raises:
        ValueError: At declaration time if the resulting policy is invalid.
    """

    def __init__(self, limit: int | None = None, window_ms: int | None = None) -> None:
        self.policy = RateLimitPolicy(
            limit=limit if limit is not None else settings.rate_limit.default_limit,
            window_ms=window_ms if window_ms is not None else settings.rate_limit.default_window_ms,
        )

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"RateLimit(limit={self.policy.limit}, window_ms={self.policy.window_ms})"

    async def __call__(self, request: Request) -> RateLimitDecision | None:
        """Admit the request or raise 429.

        Returns:
            The decision (also stored on ``request.state.rate_limit``), or None
            when rate limiting is disabled.

        Raises:
            RateLimitExceededAppError: When the client exhausted the window.
        """
        if not settings.rate_limit.enabled:
            return None

        limiter = get_rate_limiter(request)
        decision = await limiter.admit(
            resolve_client_identity(request),
            request.method,
            resolve_route_path(request),
            self.policy,
        )
        request.state.rate_limit = decision

        if decision.allowed:
            return decision

        raise build_rejection_error(decision)
