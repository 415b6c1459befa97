"""Startup and shutdown sequencing for the Redis brain.

The coordinator is handed the host object whose `brain` attribute is the
active brain slot. It installs the Redis brain into that slot as soon as it
starts, before the host begins running, and retires the brain that was there
before once the host reports it is running.
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Type

from redis.asyncio import Redis

from redis_brain.app.brain import Brain
from redis_brain.app.redis.client import StoreClient
from redis_brain.app.redis_brain import RedisBrain
from redis_brain.config import ConnectionDescriptor, resolve

logger = logging.getLogger("BrainLifecycle")


class BrainLifecycle:
    """Owns one brain from construction to close."""

    def __init__(
        self,
        host: Any,
        descriptor: Optional[ConnectionDescriptor] = None,
        brain_factory: Type[Brain] = RedisBrain,
        redis_factory: Callable[..., Redis] = Redis,
    ):
        self.host = host
        self.descriptor = descriptor
        self.brain_factory = brain_factory
        self.redis_factory = redis_factory
        self.brain: Optional[Brain] = None
        self.previous_brain: Any = None
        self._retired = False
        self._stopped = False

    async def start(self) -> Brain:
        """Build the brain, swap it into the host and bring it up."""
        if self.brain is not None:
            return self.brain

        if self.descriptor is None:
            self.descriptor = resolve()

        client = StoreClient(self.descriptor, redis_factory=self.redis_factory)
        self.brain = self.brain_factory(client)

        self.previous_brain = getattr(self.host, "brain", None)
        self.host.brain = self.brain
        logger.info(f"Installed {type(self.brain).__name__} with prefix '{self.descriptor.prefix}'")

        await self.brain.start()
        return self.brain

    async def on_running(self) -> None:
        """Close the brain the host had before ours. Runs at most once."""
        if self._retired:
            return
        self._retired = True

        old_brain, self.previous_brain = self.previous_brain, None
        if old_brain is None or old_brain is self.brain:
            return

        close = getattr(old_brain, "close", None)
        if close is None:
            return

        try:
            result = close()
            if asyncio.iscoroutine(result):
                await result
            logger.info(f"Retired previous brain {type(old_brain).__name__}")
        except Exception as e:
            logger.error(f"Error closing previous brain: {e}")

    async def shutdown(self) -> None:
        if self._stopped or self.brain is None:
            return
        self._stopped = True
        await self.brain.close()


async def install_redis_brain(host: Any, **kwargs: Any) -> BrainLifecycle:
    """Create a coordinator for host and start it."""
    lifecycle = BrainLifecycle(host, **kwargs)
    await lifecycle.start()
    return lifecycle
