"""Redis store module for the brain.

Wraps the redis.asyncio client used by the granular and whole-blob brains,
along with key naming, JSON serialization and the store error types.
"""

from redis_brain.app.redis.client import (
    ConnectionState,
    StoreClient,
)
from redis_brain.app.redis.exceptions import (
    SerializationError,
    StoreConnectionError,
    StoreError,
    StoreNotConnectedError,
    StoreOperationError,
    StoreTransportError,
)
from redis_brain.app.redis.serialization import KeyCategory, namespaced_key

__all__ = [
    "ConnectionState",
    "StoreClient",
    "SerializationError",
    "StoreConnectionError",
    "StoreError",
    "StoreNotConnectedError",
    "StoreOperationError",
    "StoreTransportError",
    "KeyCategory",
    "namespaced_key",
]
