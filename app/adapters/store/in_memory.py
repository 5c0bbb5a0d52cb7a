"""In-memory store connection (development and tests).

Notes:
- Per-process only: running multiple workers gives each worker its own
  counters and cache, so limits are not shared.
- Thread-safe: uses a lock around shared state. Every method completes
  without awaiting while the lock is held, which also makes each call atomic
  with respect to other coroutines.
- Expiry is lazy: entries are dropped when touched after their deadline.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.store.base import AbstractStoreConnection, TTL_MISSING, TTL_NO_EXPIRY
from app.core.errors import StoreCommandError


@dataclass
class _Entry:
    value: bytes
    expires_at: float | None


class InMemoryStoreConnection(AbstractStoreConnection):
    """Dict-backed store honouring the Redis semantics the core relies on."""

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the in-memory store.

        Args:
            clock: Time source function returning UNIX time in seconds.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired_locked()
            return len(self._entries)

    def _live_entry_locked(self, key: str) -> _Entry | None:
        """Return the entry for key, dropping it first if it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry

    def _purge_expired_locked(self) -> None:
        now = self._clock()
        expired = [
            k for k, e in self._entries.items() if e.expires_at is not None and e.expires_at <= now
        ]
        for key in expired:
            del self._entries[key]

    def _increment_locked(self, key: str) -> int:
        entry = self._live_entry_locked(key)
        if entry is None:
            self._entries[key] = _Entry(value=b"1", expires_at=None)
            return 1
        try:
            count = int(entry.value) + 1
        except ValueError as exc:
            raise StoreCommandError(
                code="store_command_failed",
                message="value is not an integer or out of range",
                details={"operation": "incr"},
            ) from exc
        entry.value = str(count).encode()
        return count

    def _expire_locked(self, key: str, seconds: int) -> bool:
        entry = self._live_entry_locked(key)
        if entry is None:
            return False
        if seconds <= 0:
            # Redis deletes a key when given a non-positive expiry.
            del self._entries[key]
            return True
        entry.expires_at = self._clock() + seconds
        return True

    async def get(self, key: str) -> bytes | None:
        with self._lock:
            entry = self._live_entry_locked(key)
            return entry.value if entry else None

    async def set(self, key: str, value: bytes, ttl_ms: int) -> None:
        if ttl_ms <= 0:
            raise StoreCommandError(
                code="store_command_failed",
                message="invalid expire time in 'set' command",
                details={"operation": "set"},
            )
        with self._lock:
            self._entries[key] = _Entry(
                value=bytes(value),
                expires_at=self._clock() + ttl_ms / 1000,
            )

    async def delete(self, key: str) -> bool:
        with self._lock:
            entry = self._live_entry_locked(key)
            if entry is None:
                return False
            del self._entries[key]
            return True

    async def ttl(self, key: str) -> int:
        with self._lock:
            entry = self._live_entry_locked(key)
            if entry is None:
                return TTL_MISSING
            if entry.expires_at is None:
                return TTL_NO_EXPIRY
            return max(0, int(math.ceil(entry.expires_at - self._clock())))

    async def increment(self, key: str) -> int:
        with self._lock:
            return self._increment_locked(key)

    async def expire(self, key: str, seconds: int) -> bool:
        with self._lock:
            return self._expire_locked(key, seconds)

    async def incr_with_expire(self, key: str, seconds: int) -> int:
        with self._lock:
            count = self._increment_locked(key)
            self._expire_locked(key, seconds)
            return count

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        with self._lock:
            self._entries.clear()
