"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It pins the testing environment and the in-memory store backend before
any module loads settings.
"""

import os
from unittest.mock import AsyncMock

import pytest

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("REDIS_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from app.adapters.store.base import AbstractStoreConnection  # noqa: E402
from app.adapters.store.in_memory import InMemoryStoreConnection  # noqa: E402
from app.core.errors import StoreUnavailableError  # noqa: E402


class FakeTime:
    """Deterministic clock used to test expiration logic."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()


@pytest.fixture
def memory_store(fake_time: FakeTime) -> InMemoryStoreConnection:
    return InMemoryStoreConnection(clock=fake_time)


@pytest.fixture
def failing_store() -> AsyncMock:
    """Store whose every operation fails as if Redis were down."""
    store = AsyncMock(spec=AbstractStoreConnection)
    outage = StoreUnavailableError(code="store_unavailable", message="connection refused")
    for name in ("get", "set", "delete", "ttl", "increment", "expire", "incr_with_expire", "ping"):
        getattr(store, name).side_effect = outage
    return store
