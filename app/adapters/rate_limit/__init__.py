"""Rate limiting adapters.

This package provides a small abstraction layer so route wiring depends on an
admission interface while counters live in the shared key-value store.
"""

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    DecisionOutcome,
    RateLimitDecision,
    RateLimitPolicy,
)
from app.adapters.rate_limit.fixed_window import FixedWindowRateLimiter, build_key, hash_identity

__all__ = [
    "AbstractRateLimiter",
    "DecisionOutcome",
    "FixedWindowRateLimiter",
    "RateLimitDecision",
    "RateLimitPolicy",
    "build_key",
    "hash_identity",
]
