"""Whole-blob Redis brain.

The legacy layout: the entire brain is one JSON document under
`<prefix>:storage`, loaded once at start and rewritten on every save.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from redis_brain.app.brain import Brain
from redis_brain.app.redis.exceptions import SerializationError, StoreError
from redis_brain.app.redis.serialization import deserialize_from_redis, serialize_to_redis
from redis_brain.domain.events import BrainEvent

logger = logging.getLogger("StorageBrain")


class StorageBrain(Brain):
    """Brain persisted as a single serialized snapshot."""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._save_task: Optional["asyncio.Task[None]"] = None

    def snapshot(self) -> Dict[str, Any]:
        return {
            "users": {user_id: user.to_dict() for user_id, user in self.data["users"].items()},
            "_private": dict(self.data["_private"]),
        }

    async def _load(self) -> Dict[str, Any]:
        try:
            raw = await self.client.get(self.storage_key)
            data = deserialize_from_redis(raw)
        except SerializationError as e:
            logger.error(f"Stored brain for {self.prefix} is not valid JSON, starting empty: {e}")
            data = None
        except StoreError as e:
            logger.error(f"Unable to get data from Redis: {e}")
            data = None

        if isinstance(data, dict):
            logger.info(f"Data for {self.prefix} brain retrieved from Redis")
            self._merge_snapshot(data)
        else:
            logger.info(f"Initializing new data for {self.prefix} brain")
            data = {}

        self.auto_save = True
        return data

    def _on_ready(self) -> None:
        self._start_auto_save()

    async def save(self) -> None:
        """Write the full snapshot to `<prefix>:storage`."""
        data = self.snapshot()
        self.events.emit(BrainEvent.SAVE, data)
        if not self.is_connected:
            return

        try:
            await self.client.set(self.storage_key, serialize_to_redis(data))
        except (StoreError, TypeError, ValueError) as e:
            logger.error(f"Unable to save brain to Redis: {e}")

    # --- Periodic save ---

    def reset_save_interval(self, seconds: float) -> None:
        super().reset_save_interval(seconds)
        if self._save_task is not None:
            self._stop_auto_save()
            self._start_auto_save()

    def _start_auto_save(self) -> None:
        if self._save_task is not None:
            return
        try:
            self._save_task = asyncio.get_running_loop().create_task(self._auto_save_loop())
        except RuntimeError:
            logger.debug("No running event loop, periodic save not started")

    def _stop_auto_save(self) -> None:
        if self._save_task is not None:
            self._save_task.cancel()
            self._save_task = None

    async def _auto_save_loop(self) -> None:
        while True:
            await asyncio.sleep(self.save_interval)
            if self.auto_save:
                await self._guard(self.save(), "saving brain")
