"""Granular Redis brain.

Persists each private key as a field of the `<prefix>:private` hash and each
user as a field of the `<prefix>:users` hash. Every mutation is written as it
happens, so `save()` has nothing left to do.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Set

from redis_brain.app.brain import Brain
from redis_brain.app.redis.exceptions import SerializationError, StoreError
from redis_brain.app.redis.serialization import deserialize_from_redis, serialize_to_redis
from redis_brain.domain.user import User

logger = logging.getLogger("RedisBrain")


class RedisBrain(Brain):
    """Brain that mirrors per-field Redis hashes."""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        # Keys with a read-miss fetch in flight that no local change has superseded
        self._fetching: Set[str] = set()

    # --- Private data ---

    def _fetch_private(self, key: str) -> None:
        if self.is_connected:
            self._fetching.add(key)
            self._spawn(self._load_private(key), f"getting key {key}")

    async def _load_private(self, key: str) -> None:
        raw = await self.client.hash_get(self.private_key, key)
        if key not in self._fetching:
            return
        self._fetching.discard(key)
        if raw is None:
            return

        try:
            value = deserialize_from_redis(raw)
        except SerializationError as e:
            logger.error(f"Error parsing key {key}: {e}")
            return

        self.data["_private"].setdefault(key, value)

    def _persist_private(self, pairs: Dict[str, Any]) -> None:
        self._fetching.difference_update(pairs)
        if not self.is_connected:
            return

        try:
            ops = [("hset", self.private_key, key, serialize_to_redis(value)) for key, value in pairs.items()]
        except (TypeError, ValueError) as e:
            logger.error(f"Error serializing keys {list(pairs)}: {e}")
            return

        self._spawn(self.client.batch(ops), "setting keys")

    def _persist_removal(self, key: str) -> None:
        self._fetching.discard(key)
        if self.is_connected:
            self._spawn(self.client.hash_delete(self.private_key, key), f"removing key {key}")

    # --- Users ---

    def _reconcile_new_user(self, user: User, room: Optional[str]) -> None:
        if self.is_connected:
            self._spawn(self._reconcile_user(user, room), f"loading user {user.id}")

    async def _reconcile_user(self, user: User, room: Optional[str]) -> None:
        """Merge the stored record into the live one, or store the live one."""
        try:
            stored = deserialize_from_redis(await self.client.hash_get(self.users_key, user.id))
        except StoreError as e:
            logger.error(f"Error loading user {user.id}: {e}")
            await self._store_user(user, "saving fallback user")
            return

        if not isinstance(stored, dict):
            await self._store_user(user, "saving new user")
            return

        user.merge(stored)
        if room and user.room != room:
            user.room = room
            await self._store_user(user, "updating user")

    def _persist_user(self, user: User) -> None:
        if self.is_connected:
            self._spawn(self._store_user(user, "updating user room"), f"updating user {user.id}")

    async def _store_user(self, user: User, action: str) -> None:
        try:
            await self.client.hash_set(self.users_key, user.id, serialize_to_redis(user.to_dict()))
        except (StoreError, TypeError, ValueError) as e:
            logger.error(f"Error {action} {user.id}: {e}")

    def _warm_users(self, action: str) -> None:
        if self.is_connected:
            self._spawn(self._pull_users(), action)

    async def _pull_users(self) -> None:
        """Add every stored user not yet cached. Cached records are left alone."""
        stored_users = await self.client.hash_get_all(self.users_key)
        for user_id, user in self._decode_users(stored_users).items():
            self.data["users"].setdefault(user_id, user)

    @staticmethod
    def _decode_users(stored_users: Mapping[str, str]) -> Dict[str, User]:
        users: Dict[str, User] = {}
        for user_id, raw in stored_users.items():
            try:
                attributes = deserialize_from_redis(raw)
            except SerializationError as e:
                logger.error(f"Error parsing user {user_id}: {e}")
                continue
            users[user_id] = User.from_dict(user_id, attributes if isinstance(attributes, dict) else {})
        return users

    async def load_all_users(self) -> Dict[str, User]:
        """Fetch the complete stored directory as fresh User objects.

        Meant for callers such as roster syncs that need a consistent snapshot
        rather than the incremental cache. Returns {} when disconnected or on
        failure. The cache is not modified.
        """
        if not self.is_connected:
            return {}

        try:
            stored_users = await self.client.hash_get_all(self.users_key)
        except StoreError as e:
            logger.error(f"Error loading all users: {e}")
            return {}

        users = self._decode_users(stored_users)
        logger.info(f"Retrieved {len(users)} users from Redis")
        return users

    async def save_user(self, user_id: str, user_data: Mapping[str, Any]) -> None:
        """Write one user record straight to Redis."""
        if not self.is_connected:
            return

        try:
            await self.client.hash_set(self.users_key, str(user_id), serialize_to_redis(dict(user_data)))
        except (StoreError, TypeError, ValueError) as e:
            logger.error(f"Error saving user {user_id}: {e}")
