"""Key-value store connection interface.

The contract mirrors the small subset of the Redis command set the core
needs. Implementations raise ``StoreAppError`` subclasses on failure and never
return sentinel error values, so callers decide their own failure policy.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

# TTL sentinels, same values Redis returns on the wire.
TTL_NO_EXPIRY = -1
TTL_MISSING = -2


class AbstractStoreConnection(ABC):
    """Interface for the shared key-value store connection."""

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Return the raw value stored at key, or None when absent."""
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, value: bytes, ttl_ms: int) -> None:
        """Store value at key with a time-to-live in milliseconds (SET PX)."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key. Returns True when a key was actually removed."""
        raise NotImplementedError

    @abstractmethod
    async def ttl(self, key: str) -> int:
        """Return remaining seconds for key.

        Returns:
            Seconds remaining, ``TTL_NO_EXPIRY`` when the key has no expiry,
            or ``TTL_MISSING`` when the key doesn't exist.
        """
        raise NotImplementedError

    @abstractmethod
    async def increment(self, key: str) -> int:
        """Atomically increment the integer at key (created at 1, no TTL)."""
        raise NotImplementedError

    @abstractmethod
    async def expire(self, key: str, seconds: int) -> bool:
        """Set a TTL on key. Returns False when the key doesn't exist."""
        raise NotImplementedError

    @abstractmethod
    async def incr_with_expire(self, key: str, seconds: int) -> int:
        """Run INCR then EXPIRE on key as one atomic transaction.

        Args:
            key: Counter key.
            seconds: Expiry applied in the same transaction.

        Returns:
            The counter value after the increment.
        """
        raise NotImplementedError

    @abstractmethod
    async def ping(self) -> bool:
        """Round trip to the store. Raises on failure."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release connection resources. Default is a no-op."""
        return None
