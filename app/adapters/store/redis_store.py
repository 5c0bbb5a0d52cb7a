"""Redis store connection adapter.

Wraps a single ``redis.asyncio.Redis`` client shared by every consumer in the
process. The client connects lazily on the first command, so constructing the
adapter never blocks or fails. Redis exceptions are translated into
``StoreAppError`` subclasses and logged where they happen.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, TypeVar

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.adapters.store.base import AbstractStoreConnection
from app.core.errors import StoreCommandError, StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RedisStoreConnection(AbstractStoreConnection):
    """Store connection backed by Redis.

    Every command is a network round trip bounded by ``socket_timeout_seconds``;
    a timeout surfaces as ``StoreUnavailableError`` like any other connection
    failure.
    """

    def __init__(
        self,
        *,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: str | None = None,
        socket_timeout_seconds: float = 2.0,
        connect_timeout_seconds: float = 2.0,
        client: Any | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            host: Redis host.
            port: Redis port.
            db: Logical database index.
            password: Optional password.
            socket_timeout_seconds: Per-command timeout.
            connect_timeout_seconds: Connection establishment timeout.
            client: Pre-built client (tests); built from the other args if None.
        """
        self.host = host
        self.port = port
        self._client = client or redis.Redis(
            host=host,
            port=port,
            db=db,
            password=password,
            socket_timeout=socket_timeout_seconds,
            socket_connect_timeout=connect_timeout_seconds,
            decode_responses=False,
        )

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"RedisStoreConnection(host={self.host!r}, port={self.port})"

    async def _execute(self, operation: str, key: str | None, command: Awaitable[T]) -> T:
        """Await a client command, translating and logging Redis failures."""
        try:
            return await command
        except (RedisConnectionError, RedisTimeoutError, OSError) as exc:
            logger.error(
                "store.unavailable",
                extra={
                    "operation": operation,
                    "store_key": key,
                    "store_host": self.host,
                    "store_port": self.port,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            raise StoreUnavailableError(
                code="store_unavailable",
                message=f"Key-value store unavailable during {operation}",
                details={"operation": operation},
            ) from exc
        except RedisError as exc:
            logger.error(
                "store.command_failed",
                extra={
                    "operation": operation,
                    "store_key": key,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            raise StoreCommandError(
                code="store_command_failed",
                message=f"Key-value store rejected {operation}",
                details={"operation": operation},
            ) from exc

    async def get(self, key: str) -> bytes | None:
        return await self._execute("get", key, self._client.get(key))

    async def set(self, key: str, value: bytes, ttl_ms: int) -> None:
        await self._execute("set", key, self._client.set(key, value, px=ttl_ms))

    async def delete(self, key: str) -> bool:
        removed = await self._execute("delete", key, self._client.delete(key))
        return bool(removed)

    async def ttl(self, key: str) -> int:
        return int(await self._execute("ttl", key, self._client.ttl(key)))

    async def increment(self, key: str) -> int:
        return int(await self._execute("incr", key, self._client.incr(key)))

    async def expire(self, key: str, seconds: int) -> bool:
        return bool(await self._execute("expire", key, self._client.expire(key, seconds)))

    async def incr_with_expire(self, key: str, seconds: int) -> int:
        """MULTI / INCR / EXPIRE / EXEC."""
        results = await self._execute(
            "incr_with_expire", key, self._run_incr_expire(key, seconds)
        )
        return int(results[0])

    async def _run_incr_expire(self, key: str, seconds: int) -> list[Any]:
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, seconds)
            return await pipe.execute()

    async def ping(self) -> bool:
        return bool(await self._execute("ping", None, self._client.ping()))

    async def close(self) -> None:
        """Close the underlying connection pool."""
        try:
            await self._client.aclose()
        except RedisError as exc:
            logger.warning(
                "store.close_failed",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
