"""Custom exceptions for the Redis brain store."""


class StoreError(Exception):
    """Base exception for store operations."""
    pass


class StoreConnectionError(StoreError):
    """Could not establish the initial connection."""
    pass


class StoreTransportError(StoreError):
    """Socket-level failure talking to Redis (refused, reset, timeout)."""
    pass


class StoreOperationError(StoreError):
    """Redis rejected a command."""
    pass


class StoreNotConnectedError(StoreError):
    """Operation attempted before connect() or after disconnect()."""
    pass


class SerializationError(StoreError):
    """A value read back from Redis is not valid JSON."""
    pass
