"""Key-value store adapters.

One store connection is created at process start and handed to the rate
limiter and the cache service. Both only depend on the abstract contract in
``base``, so the Redis backend can be replaced by the in-memory one for local
development and tests.
"""

from app.adapters.store.base import AbstractStoreConnection, TTL_MISSING, TTL_NO_EXPIRY
from app.adapters.store.factory import create_store_connection
from app.adapters.store.in_memory import InMemoryStoreConnection
from app.adapters.store.redis_store import RedisStoreConnection

__all__ = [
    "AbstractStoreConnection",
    "InMemoryStoreConnection",
    "RedisStoreConnection",
    "TTL_MISSING",
    "TTL_NO_EXPIRY",
    "create_store_connection",
]
