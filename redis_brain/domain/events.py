"""
events.py
Observer registry shared by the store client and the brain.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, List

logger = logging.getLogger("EventRegistry")

Handler = Callable[[Any], Any]


class BrainEvent(str, Enum):
    CONNECTED = "connected"
    LOADED = "loaded"
    SAVE = "save"
    CLOSED = "closed"


class StoreEvent(str, Enum):
    CONNECTED = "connected"
    ERROR = "error"
    CLOSED = "closed"


class EventRegistry:
    """Maps an event kind to the handlers subscribed to it.

    Handlers are called synchronously in subscription order. A handler that
    returns a coroutine has it scheduled on the running loop. Exceptions
    raised by handlers are logged and never reach the emitter.
    """

    def __init__(self) -> None:
        self._handlers: Dict[Enum, List[Handler]] = {}
        self._tasks: set = set()

    def subscribe(self, kind: Enum, handler: Handler) -> Callable[[], None]:
        """Register a handler and return a callable that removes it."""
        self._handlers.setdefault(kind, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(kind, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def emit(self, kind: Enum, payload: Any = None) -> None:
        for handler in list(self._handlers.get(kind, [])):
            try:
                result = handler(payload)
            except Exception as e:
                logger.error(f"Handler for {kind.value} failed: {e}")
                continue

            if asyncio.iscoroutine(result):
                self._schedule(kind, result)

    def _schedule(self, kind: Enum, coro: Any) -> None:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.warning(f"No running event loop; dropped async handler for {kind.value}")
            return

        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: "asyncio.Task") -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Async handler failed: {task.exception()}")

    def handler_count(self, kind: Enum) -> int:
        return len(self._handlers.get(kind, []))

    def clear(self) -> None:
        """Detach every handler."""
        self._handlers.clear()
