"""Store-backed fixed-window rate limiter.

Each (client identity, method, route) pair owns one integer counter in the
shared store. The first admitted request creates the counter and its TTL; the
key expiring is what starts the next window.

Notes:
- The read-then-increment sequence is not atomic: requests in flight at the
  same time can each read a count below the limit and all be admitted, so a
  window may transiently overshoot by the number of concurrent requests.
- Across a window boundary a client can get up to 2x the limit.
- Fail open: if the store can't be reached the request is admitted and the
  decision is marked DEGRADED.
"""

from __future__ import annotations

import hashlib
import logging
import time
from datetime import datetime, timezone
from typing import Callable

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    DecisionOutcome,
    RateLimitDecision,
    RateLimitPolicy,
)
from app.adapters.store.base import AbstractStoreConnection
from app.core.errors import StoreAppError

logger = logging.getLogger(__name__)

KEY_PREFIX = "ratelimit"


def hash_identity(client_identity: str) -> str:
    """SHA-256 hex digest of a raw client identity.

    Only the digest is ever persisted or logged.
    """
    return hashlib.sha256(client_identity.encode("utf-8")).hexdigest()


def build_key(client_identity: str, method: str, route_path: str) -> str:
    """Build the store key for an (identity, route) counter.

    Examples:
        >>> build_key("10.0.0.1", "GET", "/tasks").startswith("ratelimit:")
        True
    """
    return f"{KEY_PREFIX}:{hash_identity(client_identity)}:{method.upper()}:{route_path}"


class FixedWindowRateLimiter(AbstractRateLimiter):
    """Fixed-window counter over the shared key-value store.

    O(1) storage and two or three store round trips per request.
    """

    def __init__(
        self,
        store: AbstractStoreConnection,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Shared store connection.
            clock: Time source function returning UNIX time in seconds.
        """
        self._store = store
        self._clock = clock

    def _build_allowed_decision(
        self, *, policy: RateLimitPolicy, count: int, key_hash: str
    ) -> RateLimitDecision:
        return RateLimitDecision(
            outcome=DecisionOutcome.ALLOWED,
            limit=policy.limit,
            current=count,
            remaining=max(0, policy.limit - count),
            key_hash=key_hash,
        )

    def _build_rejected_decision(
        self, *, policy: RateLimitPolicy, current: int, ttl: int, key_hash: str
    ) -> RateLimitDecision:
        # Negative TTL means the key has no expiry or vanished between calls;
        # report a full window rather than a time in the past.
        retry_after = ttl if ttl >= 0 else policy.window_seconds
        next_valid = datetime.fromtimestamp(self._clock() + retry_after, tz=timezone.utc)
        return RateLimitDecision(
            outcome=DecisionOutcome.REJECTED,
            limit=policy.limit,
            current=current,
            remaining=0,
            retry_after_seconds=retry_after,
            next_valid_request_at=next_valid,
            key_hash=key_hash,
        )

    async def admit(
        self,
        client_identity: str,
        method: str,
        route_path: str,
        policy: RateLimitPolicy | None,
    ) -> RateLimitDecision:
        """Check and count one request.

        Returns:
            ALLOWED or REJECTED; DEGRADED when the store failed (treated as allowed).
        """
        if policy is None:
            return RateLimitDecision(outcome=DecisionOutcome.ALLOWED)

        key_hash = hash_identity(client_identity)
        key = build_key(client_identity, method, route_path)

        try:
            raw = await self._store.get(key)
            current = int(raw) if raw is not None else 0

            if current >= policy.limit:
                ttl = await self._store.ttl(key)
                decision = self._build_rejected_decision(
                    policy=policy, current=current, ttl=ttl, key_hash=key_hash
                )
                logger.warning(
                    "rate_limit.exceeded",
                    extra={
                        "key_hash": key_hash[:16],
                        "method": method,
                        "route": route_path,
                        "current": current,
                        "limit": policy.limit,
                        "retry_after_s": decision.retry_after_seconds,
                    },
                )
                return decision

            # EXPIRE only matters while the key has no TTL, i.e. right after
            # INCR created it; afterwards it re-applies the same window length.
            count = await self._store.incr_with_expire(key, policy.window_seconds)
        except (StoreAppError, ValueError) as exc:
            logger.error(
                "rate_limit.store_error",
                extra={
                    "key_hash": key_hash[:16],
                    "method": method,
                    "route": route_path,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                    "fail_open": True,
                },
            )
            return RateLimitDecision(
                outcome=DecisionOutcome.DEGRADED,
                limit=policy.limit,
                key_hash=key_hash,
            )

        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_hash": key_hash[:16],
                "method": method,
                "route": route_path,
                "current": count,
                "limit": policy.limit,
            },
        )
        return self._build_allowed_decision(policy=policy, count=count, key_hash=key_hash)

    async def reset(self, client_identity: str, method: str, route_path: str) -> bool:
        """Delete the counter for one (identity, route) pair.

        Returns:
            True if the delete reached the store, False on store error.
        """
        key = build_key(client_identity, method, route_path)
        try:
            await self._store.delete(key)
        except StoreAppError as exc:
            logger.error(
                "rate_limit.reset_failed",
                extra={"route": route_path, "error_msg": str(exc)},
            )
            return False

        logger.info(
            "rate_limit.reset",
            extra={"key_hash": hash_identity(client_identity)[:16], "route": route_path},
        )
        return True
