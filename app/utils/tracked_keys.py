"""Thread-safe set of store keys written by a service.

Used to bound bulk invalidation to keys the process knows it wrote, without
scanning the store. The set is not authoritative: entries that expire in the
store stay here until removed or cleared.
"""

from __future__ import annotations

import threading
from typing import Iterable, Iterator


class TrackedKeySet:
    """Lock-guarded set of keys shared between concurrent request handlers."""

    def __init__(self) -> None:
        self._keys: set[str] = set()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._keys

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())

    def add(self, key: str) -> None:
        with self._lock:
            self._keys.add(key)

    def discard(self, key: str) -> None:
        with self._lock:
            self._keys.discard(key)

    def snapshot(self) -> list[str]:
        """Return a point-in-time copy, safe to iterate while others mutate."""
        with self._lock:
            return list(self._keys)

    def discard_many(self, keys: Iterable[str]) -> None:
        """Drop the given keys in one step; keys added since stay tracked."""
        with self._lock:
            self._keys.difference_update(keys)
