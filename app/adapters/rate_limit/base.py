"""Rate limiter interfaces.

The HTTP layer depends on this abstraction (not the concrete implementation)
so the counting strategy can change without touching route wiring.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum


@dataclass(frozen=True)
class RateLimitPolicy:
    """Per-route admission policy.

    Attributes:
        limit: Max requests per window.
        window_ms: Window length in milliseconds (whole seconds are used).
    """

    limit: int
    window_ms: int

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ValueError("limit must be >= 1")
        # The store expiry is in whole seconds; below 1s it would floor to 0,
        # which deletes the counter instead of starting a window.
        if self.window_ms < 1000:
            raise ValueError("window_ms must be >= 1000")

    @property
    def window_seconds(self) -> int:
        return self.window_ms // 1000


class DecisionOutcome(str, Enum):
    ALLOWED = "allowed"
    REJECTED = "rejected"
    DEGRADED = "degraded"  # store failed, allowed anyway (fail open)


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of an admission check.

    Attributes:
        outcome: ALLOWED, REJECTED, or DEGRADED (fail-open allow).
        limit: Max requests per window (None when no policy applied).
        current: Counter value observed for the window.
        remaining: Requests left in the window (0 when rejected).
        retry_after_seconds: Wait before retrying, set only when rejected.
        next_valid_request_at: UTC time of the next admissible request when rejected.
        key_hash: SHA-256 of the client identity, safe to log.
    """

    outcome: DecisionOutcome
    limit: int | None = None
    current: int = 0
    remaining: int | None = None
    retry_after_seconds: int | None = None
    next_valid_request_at: datetime | None = None
    key_hash: str | None = None

    @property
    def allowed(self) -> bool:
        """Degraded decisions are reported to callers as allowed."""
        return self.outcome is not DecisionOutcome.REJECTED


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    async def admit(
        self,
        client_identity: str,
        method: str,
        route_path: str,
        policy: RateLimitPolicy | None,
    ) -> RateLimitDecision:
        """Decide whether a request may proceed.

        Args:
            client_identity: Raw client identity (e.g. network address).
            method: HTTP method.
            route_path: Route template or path.
            policy: Policy attached to the route; None disables limiting.

        Returns:
            RateLimitDecision describing whether the request was admitted.
        """
        raise NotImplementedError

    @abstractmethod
    async def reset(self, client_identity: str, method: str, route_path: str) -> bool:
        """Drop the counter for one (identity, route) pair."""
        raise NotImplementedError
