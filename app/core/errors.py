"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    http_status: int
    status_code: int
    limit: int
    current: int
    remaining_requests: int
    next_valid_request_time: str
    retry_after: int
    key_hash: str
    operation: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class StoreAppError(AppError):
    """Raised when a key-value store operation fails."""


class StoreUnavailableError(StoreAppError):
    """Raised when the store can't be reached or a round trip times out."""


class StoreCommandError(StoreAppError):
    """Raised when the store rejects a command (e.g. INCR on a non-integer)."""


class RateLimitExceededAppError(AppError):
    """Raised by the HTTP layer when a request is rejected by the rate limiter."""
