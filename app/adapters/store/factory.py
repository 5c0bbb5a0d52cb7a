"""Factory pattern for creating store connection instances."""

from app.adapters.store.base import AbstractStoreConnection
from app.adapters.store.in_memory import InMemoryStoreConnection
from app.adapters.store.redis_store import RedisStoreConnection
from app.core.config import RedisSettings
from app.core.errors import ValidationAppError


def create_store_connection(redis_settings: RedisSettings) -> AbstractStoreConnection:
    """Instantiate the store connection selected by configuration.

    Called once at process start; the returned handle is shared by the rate
    limiter and the cache service.

    Args:
        redis_settings: Resolved store settings.

    Returns:
        AbstractStoreConnection: Configured (not yet connected) store handle.

    Raises:
        ValidationAppError: If the configured backend is unknown.
    """
    backend = redis_settings.backend.lower()

    if backend == "redis":
        return RedisStoreConnection(
            host=redis_settings.host,
            port=redis_settings.port,
            db=redis_settings.db,
            password=redis_settings.password,
            socket_timeout_seconds=redis_settings.socket_timeout_seconds,
            connect_timeout_seconds=redis_settings.connect_timeout_seconds,
        )

    if backend == "memory":
        return InMemoryStoreConnection()

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown store backend: '{backend}'. Supported backends: redis, memory",
    )
