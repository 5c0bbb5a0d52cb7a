"""Namespaced, TTL-bound cache over the shared key-value store.

The cache is best effort: store failures degrade to a miss (reads) or a
logged no-op (writes) and are never raised to callers. The only errors that
cross this boundary are malformed bulk-operation arguments.

Keys are namespaced as ``<app_name>:<environment>:<key>`` so deployments
sharing one store don't collide. Values are serialized to JSON bytes on write
and parsed on read; that round trip is what isolates stored state from both
the caller's original object and any object previously returned.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Sequence

from pydantic_core import from_json, to_json

from app.adapters.store.base import AbstractStoreConnection
from app.core.errors import StoreAppError, ValidationAppError
from app.utils.tracked_keys import TrackedKeySet

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300


def _loggable_key(key: Any) -> str:
    return key if isinstance(key, str) else f"<{type(key).__name__}>"


class CacheService:
    """Cache of computed results with namespacing and tracked-key invalidation.

    Attributes:
        namespace: Prefix applied to every logical key.
        default_ttl_seconds: TTL used when ``set``/``mset`` get none.
    """

    def __init__(
        self,
        store: AbstractStoreConnection,
        environment: str,
        *,
        app_name: str = "taskflow",
        default_ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ) -> None:
        """Initialize the cache service.

        Args:
            store: Shared store connection.
            environment: Deployment environment, fixed for the process lifetime.
            app_name: First namespace segment.
            default_ttl_seconds: Default entry TTL.
        """
        self._store = store
        self.namespace = f"{app_name}:{environment}:"
        self.default_ttl_seconds = default_ttl_seconds
        self._tracked = TrackedKeySet()
        self._stats_lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._errors = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"CacheService(namespace={self.namespace!r}, "
            f"default_ttl_seconds={self.default_ttl_seconds}, tracked={len(self._tracked)})"
        )

    @property
    def tracked_keys(self) -> list[str]:
        """Namespaced keys this service has written and not deleted."""
        return self._tracked.snapshot()

    def namespaced_key(self, key: str) -> str:
        """Prefix a logical key with the namespace.

        Raises:
            ValidationAppError: If key is not a non-empty string.
        """
        if not isinstance(key, str) or not key:
            raise ValidationAppError(
                code="cache_invalid_key",
                message="Cache key must be a non-empty string",
            )
        return f"{self.namespace}{key}"

    def _record(self, *, hit: bool = False, miss: bool = False, error: bool = False) -> None:
        with self._stats_lock:
            self._hits += int(hit)
            self._misses += int(miss)
            self._errors += int(error)

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Store a value under key.

        Invalid keys, unserializable values and store failures are logged and
        the call becomes a no-op.

        Args:
            key: Logical (un-namespaced) key.
            value: JSON-serializable value (pydantic models and dataclasses included).
            ttl_seconds: Entry TTL; defaults to ``default_ttl_seconds``.
        """
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        try:
            namespaced = self.namespaced_key(key)
            if ttl <= 0:
                raise ValidationAppError(
                    code="cache_invalid_ttl",
                    message="Cache TTL must be a positive number of seconds",
                )
            payload = to_json(value)
            await self._store.set(namespaced, payload, ttl * 1000)
        except (ValidationAppError, StoreAppError, ValueError, TypeError) as exc:
            self._record(error=True)
            logger.error(
                "cache.set_failed",
                extra={
                    "cache_key": _loggable_key(key),
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            return

        self._tracked.add(namespaced)
        logger.debug(
            "cache.set",
            extra={"cache_key": namespaced, "ttl_s": ttl, "size_bytes": len(payload)},
        )

    async def get(self, key: str) -> Any | None:
        """Return a fresh copy of the value at key, or None.

        None is returned for a miss and for any failure alike.
        """
        try:
            namespaced = self.namespaced_key(key)
            raw = await self._store.get(namespaced)
            if raw is None:
                self._record(miss=True)
                logger.debug("cache.miss", extra={"cache_key": namespaced})
                return None
            value = from_json(raw)
        except (ValidationAppError, StoreAppError, ValueError) as exc:
            self._record(error=True)
            logger.error(
                "cache.get_failed",
                extra={
                    "cache_key": _loggable_key(key),
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            return None

        self._record(hit=True)
        logger.debug("cache.hit", extra={"cache_key": namespaced})
        return value

    async def delete(self, key: str) -> bool:
        """Remove key from the store and the tracking set.

        Returns:
            False on error, True otherwise (including when the key didn't exist).
        """
        try:
            namespaced = self.namespaced_key(key)
            await self._store.delete(namespaced)
        except (ValidationAppError, StoreAppError) as exc:
            self._record(error=True)
            logger.error(
                "cache.delete_failed",
                extra={
                    "cache_key": _loggable_key(key),
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            return False

        self._tracked.discard(namespaced)
        logger.debug("cache.delete", extra={"cache_key": namespaced})
        return True

    async def _delete_tracked(self, namespaced: str) -> bool:
        try:
            await self._store.delete(namespaced)
        except StoreAppError as exc:
            self._record(error=True)
            logger.warning(
                "cache.clear_delete_failed",
                extra={"cache_key": namespaced, "error_msg": str(exc)},
            )
            return False
        return True

    async def clear(self) -> None:
        """Delete every tracked key in parallel, then untrack them.

        Individual delete failures are logged and don't stop the others. The
        snapshotted keys are untracked whatever the outcome; keys written by a
        concurrent ``set`` while the deletes are in flight stay tracked.
        """
        keys = self._tracked.snapshot()
        try:
            results = await asyncio.gather(*(self._delete_tracked(k) for k in keys))
        finally:
            self._tracked.discard_many(keys)

        failed = results.count(False)
        logger.info(
            "cache.cleared",
            extra={"namespace": self.namespace, "keys": len(keys), "failed": failed},
        )

    async def has(self, key: str) -> bool:
        """Existence probe, consistent with ``get``.

        A cached null counts as not present, and so does any error.
        """
        try:
            namespaced = self.namespaced_key(key)
            raw = await self._store.get(namespaced)
            return raw is not None and from_json(raw) is not None
        except (ValidationAppError, StoreAppError, ValueError) as exc:
            self._record(error=True)
            logger.error(
                "cache.has_failed",
                extra={
                    "cache_key": _loggable_key(key),
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            return False

    async def mset(
        self,
        entries: Sequence[tuple[str, Any]],
        ttl_seconds: int | None = None,
    ) -> None:
        """Set several entries concurrently.

        Args:
            entries: List of ``(key, value)`` pairs.
            ttl_seconds: TTL applied to every entry.

        Raises:
            ValidationAppError: If entries is not a list of pairs.
        """
        if not isinstance(entries, (list, tuple)) or not all(
            isinstance(pair, (list, tuple)) and len(pair) == 2 for pair in entries
        ):
            raise ValidationAppError(
                code="cache_invalid_entries",
                message="Entries must be a list of key-value pairs",
            )

        await asyncio.gather(*(self.set(key, value, ttl_seconds) for key, value in entries))

    async def mget(self, keys: Sequence[str]) -> dict[str, Any | None]:
        """Get several keys concurrently.

        Returns:
            Mapping from each original (un-namespaced) key to its value or None.

        Raises:
            ValidationAppError: If keys is not a list of strings.
        """
        if not isinstance(keys, (list, tuple)) or not all(isinstance(key, str) for key in keys):
            raise ValidationAppError(
                code="cache_invalid_keys",
                message="Keys must be a list of strings",
            )

        values = await asyncio.gather(*(self.get(key) for key in keys))
        return dict(zip(keys, values))

    def stats(self) -> dict[str, int | str]:
        """Return lightweight cache counters without exposing values."""
        with self._stats_lock:
            return {
                "namespace": self.namespace,
                "default_ttl_seconds": self.default_ttl_seconds,
                "tracked_keys": len(self._tracked),
                "hits": self._hits,
                "misses": self._misses,
                "errors": self._errors,
            }
