"""Redis client wrapper owning the brain's connection."""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from redis_brain.app.redis.exceptions import (
    StoreConnectionError,
    StoreNotConnectedError,
    StoreOperationError,
    StoreTransportError,
)
from redis_brain.config import ConnectionDescriptor
from redis_brain.domain.events import EventRegistry, StoreEvent

logger = logging.getLogger("RedisClient")

RedisFactory = Callable[..., Redis]
BatchOp = Tuple[Any, ...]

# Commands allowed inside a pipelined batch
BATCH_COMMANDS = frozenset({"set", "delete", "hset", "hdel"})


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


def is_connection_refused(error: BaseException) -> bool:
    """True for the ECONNREFUSED family, expected while Redis is still starting."""
    cause = error.__cause__ or error.__context__
    if isinstance(cause, ConnectionRefusedError):
        return True
    message = str(error).lower()
    return "refused" in message or "econnrefused" in message


class StoreClient:
    """Thin async adapter over a redis.asyncio client for one descriptor."""

    def __init__(
        self,
        descriptor: ConnectionDescriptor,
        redis_factory: RedisFactory = Redis,
    ):
        self.descriptor = descriptor
        self._redis_factory = redis_factory
        self._redis: Optional[Redis] = None
        self._state = ConnectionState.DISCONNECTED
        self.events = EventRegistry()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def redis(self) -> Redis:
        """Get the underlying Redis client instance."""
        if self._redis is None or not self.is_connected:
            raise StoreNotConnectedError("Redis client not connected. Call connect() first.")
        return self._redis

    def subscribe(self, kind: StoreEvent, handler: Callable[[Any], Any]) -> Callable[[], None]:
        return self.events.subscribe(kind, handler)

    async def connect(self) -> None:
        """Open the connection, running the PING readiness check unless disabled.

        Raises:
            StoreConnectionError: If Redis cannot be reached
        """
        if self.is_connected:
            return

        self._state = ConnectionState.CONNECTING
        self._redis = self._redis_factory(**self.descriptor.redis_kwargs())

        if self.descriptor.ready_check:
            try:
                await self._redis.ping()
            except RedisError as e:
                self._report_error(e)
                await self._release()
                self._state = ConnectionState.DISCONNECTED
                raise StoreConnectionError(f"Redis connection failed: {e}") from e
        else:
            logger.debug("Skipping Redis ready check")

        self._state = ConnectionState.CONNECTED
        logger.debug(f"Successfully connected to Redis at {self.descriptor.sanitized_url}")
        self.events.emit(StoreEvent.CONNECTED, self.descriptor)

    async def disconnect(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._state == ConnectionState.CLOSED:
            return

        await self._release()
        self._state = ConnectionState.CLOSED
        logger.info("Redis connection closed")
        self.events.emit(StoreEvent.CLOSED, None)

    async def _release(self) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.aclose()
        except RedisError as e:
            logger.error(f"Error disconnecting from Redis: {e}")
        finally:
            self._redis = None

    def _report_error(self, error: BaseException) -> None:
        if is_connection_refused(error):
            logger.debug(f"Redis connection refused: {error}")
        else:
            logger.error(f"Redis transport error: {error}")
        self.events.emit(StoreEvent.ERROR, error)

    async def _call(self, command: str, operation: Callable[[Redis], Awaitable[Any]]) -> Any:
        client = self.redis
        try:
            return await operation(client)
        except (RedisConnectionError, RedisTimeoutError) as e:
            self._report_error(e)
            raise StoreTransportError(f"{command} failed: {e}") from e
        except RedisError as e:
            raise StoreOperationError(f"{command} failed: {e}") from e

    # --- Scalar keys ---

    async def get(self, key: str) -> Optional[str]:
        return await self._call("GET", lambda r: r.get(key))

    async def set(self, key: str, value: str) -> None:
        await self._call("SET", lambda r: r.set(key, value))

    # --- Hashes ---

    async def hash_get(self, name: str, field: str) -> Optional[str]:
        return await self._call("HGET", lambda r: r.hget(name, field))

    async def hash_set(self, name: str, field: str, value: str) -> None:
        await self._call("HSET", lambda r: r.hset(name, field, value))

    async def hash_get_all(self, name: str) -> Dict[str, str]:
        return await self._call("HGETALL", lambda r: r.hgetall(name))

    async def hash_delete(self, name: str, field: str) -> int:
        return await self._call("HDEL", lambda r: r.hdel(name, field))

    # --- Batches ---

    async def batch(self, ops: Iterable[BatchOp]) -> List[Any]:
        """Run several commands in one pipelined round trip.

        Each op is a tuple of (command, *args) where command is one of
        set, delete, hset or hdel. This is not a transaction: on failure some
        commands may already have been applied.

        Raises:
            ValueError: If an op uses an unsupported command
        """
        ops = list(ops)
        for op in ops:
            if not op or op[0] not in BATCH_COMMANDS:
                raise ValueError(f"Unsupported batch command: {op[0] if op else op!r}")

        if not ops:
            return []

        async def run(client: Redis) -> List[Any]:
            async with client.pipeline(transaction=False) as pipe:
                for command, *args in ops:
                    getattr(pipe, command)(*args)
                return await pipe.execute()

        return await self._call("MULTI", run)
