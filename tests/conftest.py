"""Shared fixtures: every test gets its own in-process fake Redis server."""

import asyncio
from typing import Any, Callable, Dict, List
from unittest.mock import AsyncMock, MagicMock

import fakeredis
import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError

from redis_brain.app.brain import Brain
from redis_brain.app.redis.client import StoreClient
from redis_brain.app.redis_brain import RedisBrain
from redis_brain.config import ConnectionDescriptor

SETTLE_DELAY = 0.01


async def settle(brain: Brain) -> None:
    """Give fire-and-forget store calls time to finish."""
    await asyncio.sleep(SETTLE_DELAY)
    await brain.flush()


@pytest.fixture
def server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture
def factory_calls() -> List[Dict[str, Any]]:
    return []


@pytest.fixture
def redis_factory(server: fakeredis.FakeServer, factory_calls: List[Dict[str, Any]]) -> Callable[..., Any]:
    """Stands in for redis.asyncio.Redis, recording the kwargs it was built with."""
    def factory(**kwargs: Any) -> fakeredis.FakeAsyncRedis:
        factory_calls.append(kwargs)
        return fakeredis.FakeAsyncRedis(server=server, decode_responses=True)
    return factory


@pytest.fixture
def raw_redis(server: fakeredis.FakeServer) -> fakeredis.FakeAsyncRedis:
    """Direct access to the fake server, bypassing the brain."""
    return fakeredis.FakeAsyncRedis(server=server, decode_responses=True)


@pytest.fixture
def descriptor() -> ConnectionDescriptor:
    return ConnectionDescriptor()


@pytest.fixture
def client(descriptor: ConnectionDescriptor, redis_factory: Callable[..., Any]) -> StoreClient:
    return StoreClient(descriptor, redis_factory=redis_factory)


@pytest_asyncio.fixture
async def brain(client: StoreClient) -> RedisBrain:
    brain = RedisBrain(client)
    await brain.start()
    yield brain
    await brain.close()


REFUSED = "Error 111 connecting to localhost:6379. Connection refused."


@pytest.fixture
def failing_redis() -> MagicMock:
    """A redis client whose every command fails at the transport level."""
    failing = MagicMock()
    for command in ("ping", "get", "set", "hget", "hset", "hgetall", "hdel"):
        setattr(failing, command, AsyncMock(side_effect=RedisConnectionError(REFUSED)))
    failing.aclose = AsyncMock()
    return failing


@pytest.fixture
def failing_client(descriptor: ConnectionDescriptor, failing_redis: MagicMock) -> StoreClient:
    return StoreClient(descriptor, redis_factory=lambda **kwargs: failing_redis)
