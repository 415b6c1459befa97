"""In-memory brain mirror shared by the granular and whole-blob Redis brains.

The brain keeps a synchronous, in-memory view of the bot's state
(`data["_private"]` and the `data["users"]` directory) and pushes changes to
Redis from background tasks. Reads never wait on the network: a miss returns
None straight away and, where the subclass supports it, warms the cache for
the next call.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set

from redis_brain.app.redis.client import StoreClient
from redis_brain.app.redis.exceptions import StoreError
from redis_brain.app.redis.serialization import KeyCategory, namespaced_key
from redis_brain.domain.events import BrainEvent, EventRegistry
from redis_brain.domain.user import User

logger = logging.getLogger("RedisBrain")

DEFAULT_SAVE_INTERVAL = 5  # seconds


class BrainState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    LOADING = "loading"
    READY = "ready"
    CLOSING = "closing"
    CLOSED = "closed"


class Brain:
    """Base mirror. Subclasses decide how and when state reaches Redis."""

    def __init__(self, client: StoreClient, prefix: Optional[str] = None):
        self.client = client
        self.prefix = prefix or client.descriptor.prefix
        self.data: Dict[str, Dict[str, Any]] = {"users": {}, "_private": {}}
        self.state = BrainState.UNINITIALIZED
        self.degraded = False
        self.auto_save = False
        self.save_interval: float = DEFAULT_SAVE_INTERVAL
        self.events = EventRegistry()
        self._tasks: Set["asyncio.Task[Any]"] = set()

    # --- Keys ---

    @property
    def storage_key(self) -> str:
        return namespaced_key(self.prefix, KeyCategory.STORAGE)

    @property
    def private_key(self) -> str:
        return namespaced_key(self.prefix, KeyCategory.PRIVATE)

    @property
    def users_key(self) -> str:
        return namespaced_key(self.prefix, KeyCategory.USERS)

    @property
    def is_connected(self) -> bool:
        return self.client.is_connected

    def subscribe(self, kind: BrainEvent, handler: Callable[[Any], Any]) -> Callable[[], None]:
        """Observe connected/loaded/save/closed. Returns an unsubscribe callable."""
        return self.events.subscribe(kind, handler)

    # --- Lifecycle ---

    async def start(self) -> None:
        """Connect, load initial state and become ready.

        A failed connection leaves the brain ready in a degraded, memory-only
        mode rather than raising.
        """
        if self.state != BrainState.UNINITIALIZED:
            return

        self.state = BrainState.CONNECTING
        try:
            await self.client.connect()
        except StoreError as e:
            logger.error(f"Connection failed, running with memory-only brain: {e}")
            self.degraded = True

        self.state = BrainState.LOADING
        loaded: Dict[str, Any] = {}
        if not self.degraded:
            loaded = await self._load()

        self.state = BrainState.READY
        if not self.degraded:
            self.events.emit(BrainEvent.CONNECTED, loaded)
        self.events.emit(BrainEvent.LOADED, loaded)
        self._on_ready()

    async def _load(self) -> Dict[str, Any]:
        """Merge initial state from Redis into memory and return what was merged."""
        return {}

    def _on_ready(self) -> None:
        pass

    async def close(self) -> None:
        """Flush, disconnect and detach observers. Later calls do nothing."""
        if self.state in (BrainState.CLOSING, BrainState.CLOSED):
            return

        self.state = BrainState.CLOSING
        self._stop_auto_save()
        await self.save()
        await self.flush()
        await self.client.disconnect()

        self.state = BrainState.CLOSED
        self.events.emit(BrainEvent.CLOSED, None)
        self.events.clear()

    async def flush(self) -> None:
        """Wait for every background store operation started so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # --- Background work ---

    def _spawn(self, coro: Awaitable[Any], action: str) -> Optional["asyncio.Task[Any]"]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.debug(f"No running event loop, skipped {action}")
            return None

        task = loop.create_task(self._guard(coro, action))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guard(self, coro: Awaitable[Any], action: str) -> Any:
        try:
            return await coro
        except StoreError as e:
            logger.error(f"Error {action}: {e}")
        except Exception:
            logger.exception(f"Unexpected failure {action}")
        return None

    # --- Private data ---

    def read(self, key: str) -> Any:
        """Return the cached value for key, or None.

        This never blocks on Redis. On a cache miss the value is fetched in
        the background so that a later call can see it; the current call
        still returns None.
        """
        if not key:
            return None

        private = self.data["_private"]
        if key in private:
            return private[key]

        self._fetch_private(key)
        return None

    def write_one(self, key: str, value: Any) -> "Brain":
        return self.write_many({key: value})

    def write_many(self, pairs: Mapping[str, Any]) -> "Brain":
        """Store several key/value pairs in memory and persist them together.

        Storage failures are logged; the in-memory update always stands.
        Emits `loaded` with exactly the pairs written.
        """
        pairs = {key: value for key, value in pairs.items() if key}
        if not pairs:
            return self

        self.data["_private"].update(pairs)
        self._persist_private(pairs)
        self.events.emit(BrainEvent.LOADED, dict(pairs))
        return self

    def remove(self, key: str) -> "Brain":
        """Drop key from memory and the store. Does nothing while disconnected."""
        if not key or not self.is_connected:
            return self

        self.data["_private"].pop(key, None)
        self._persist_removal(key)
        return self

    def _fetch_private(self, key: str) -> None:
        pass

    def _persist_private(self, pairs: Dict[str, Any]) -> None:
        pass

    def _persist_removal(self, key: str) -> None:
        pass

    # --- Users ---

    def users(self) -> Dict[str, User]:
        return self.data["users"]

    def user_for_id(self, user_id: str, options: Optional[Mapping[str, Any]] = None) -> Optional[User]:
        """Get or create the user record for user_id.

        The same record object is returned for the same id. Stored attributes
        may be merged into it after this returns.
        """
        if not user_id:
            return None

        user_id = str(user_id)
        options = dict(options or {})
        users = self.data["users"]
        user = users.get(user_id)

        if user is None:
            user = User.from_dict(user_id, options)
            users[user_id] = user
            self._reconcile_new_user(user, options.get("room"))
        elif options.get("room") and user.room != options["room"]:
            user.room = options["room"]
            self._persist_user(user)

        return user

    def user_for_name(self, name: str) -> Optional[User]:
        """Case-insensitive exact name match against the cached directory."""
        if not name:
            return None

        lower_name = name.lower()
        for user in self.data["users"].values():
            if user.name and str(user.name).lower() == lower_name:
                return user

        self._warm_users("loading users for name search")
        return None

    def users_for_raw_fuzzy_name(self, fuzzy_name: str) -> List[User]:
        """Users whose name starts with fuzzy_name, ignoring case."""
        if not fuzzy_name:
            return []

        lower_fuzzy_name = fuzzy_name.lower()
        results = [
            user for user in self.data["users"].values()
            if user.name and str(user.name).lower().startswith(lower_fuzzy_name)
        ]

        self._warm_users("loading users for fuzzy search")
        return results

    def users_for_fuzzy_name(self, fuzzy_name: str) -> List[User]:
        """Like users_for_raw_fuzzy_name, but exact matches win if there are any."""
        matched_users = self.users_for_raw_fuzzy_name(fuzzy_name)
        if not matched_users:
            return matched_users

        lower_fuzzy_name = fuzzy_name.lower()
        exact_matches = [user for user in matched_users if str(user.name).lower() == lower_fuzzy_name]
        return exact_matches or matched_users

    async def load_all_users(self) -> Dict[str, User]:
        return dict(self.data["users"])

    async def save_user(self, user_id: str, user_data: Mapping[str, Any]) -> None:
        user = self.user_for_id(user_id)
        if user is not None:
            user.merge(dict(user_data))

    def _reconcile_new_user(self, user: User, room: Optional[str]) -> None:
        pass

    def _persist_user(self, user: User) -> None:
        pass

    def _warm_users(self, action: str) -> None:
        pass

    # --- Legacy brain API ---

    def merge_data(self, data: Optional[Mapping[str, Any]]) -> None:
        """Merge a {"users": ..., "_private": ...} snapshot into memory."""
        data = dict(data or {})
        self._merge_snapshot(data)
        self.events.emit(BrainEvent.LOADED, data)

    def _merge_snapshot(self, data: Mapping[str, Any]) -> None:
        users = self.data["users"]
        for user_id, attributes in (data.get("users") or {}).items():
            attributes = attributes if isinstance(attributes, dict) else {}
            user = users.get(str(user_id))
            if user is None:
                users[str(user_id)] = User.from_dict(user_id, attributes)
            else:
                user.merge(attributes)

        self.data["_private"].update(data.get("_private") or {})

    async def save(self) -> None:
        self.events.emit(BrainEvent.SAVE, {})

    def set_auto_save(self, enabled: bool) -> None:
        self.auto_save = enabled

    def reset_save_interval(self, seconds: float) -> None:
        self.save_interval = seconds

    def _stop_auto_save(self) -> None:
        pass
