"""Key naming and JSON serialization utilities for the brain store."""

import json
from enum import Enum
from typing import Any, Optional

from redis_brain.app.redis.exceptions import SerializationError


class KeyCategory(str, Enum):
    STORAGE = "storage"  # whole-blob snapshot
    PRIVATE = "private"  # granular private data hash
    USERS = "users"  # granular user directory hash


def namespaced_key(prefix: str, category: KeyCategory) -> str:
    """Build the Redis key for a brain category.

    Args:
        prefix: Namespace prefix (e.g. "hubot")
        category: Key category

    Returns:
        Key of the form "<prefix>:<category>"
    """
    return f"{prefix}:{KeyCategory(category).value}"


def serialize_to_redis(value: Any) -> str:
    """Convert a Python object to a JSON string for Redis.

    Raises:
        TypeError: If value cannot be serialized
    """
    return json.dumps(value, ensure_ascii=False)


def deserialize_from_redis(value: Optional[str]) -> Any:
    """Convert a Redis string back to a Python object.

    Args:
        value: JSON string from Redis, or None for a missing field

    Returns:
        Deserialized Python object or None

    Raises:
        SerializationError: If the stored value is not valid JSON
    """
    if value is None:
        return None

    try:
        return json.loads(value)
    except (json.JSONDecodeError, TypeError) as e:
        raise SerializationError(f"Failed to deserialize Redis value: {e}") from e
