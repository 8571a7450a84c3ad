import logging
import asyncio
from typing import Dict, List, Callable, Any, Awaitable

from .events import EventTypes

# Type definition for event handlers
EventHandler = Callable[[Any], Awaitable[None]]


class EventBus:
    """
    Asynchronous Event Bus.

    Design Philosophy:
    - Safe Registration: Uses a lock for subscriber changes.
    - Snapshot Execution: Iterates over a copy of handlers to allow
      dynamic subscription changes mid-emit.
    - Sequential Consistency: Handlers run in order, and emit() returns only
      after every handler has run, so one emitter's events never reorder.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._subscribers: Dict[EventTypes, List[EventHandler]] = {}
        self._logger = logging.getLogger("EventBus")

    async def subscribe(self, event_type: EventTypes, handler: EventHandler) -> None:
        """
        Register a callback for a specific event type safely.
        """
        async with self._lock:
            if event_type not in self._subscribers:
                self._subscribers[event_type] = []
            self._subscribers[event_type].append(handler)

    async def unsubscribe(self, event_type: EventTypes, handler: EventHandler) -> None:
        async with self._lock:
            handlers = self._subscribers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

    async def emit(self, event_type: EventTypes, data: Any = None) -> None:
        """
        Emit an event to all subscribers.
        """
        # 1. SNAPSHOT PHASE
        if event_type not in self._subscribers:
            return

        async with self._lock:
            handlers_snapshot = list(self._subscribers.get(event_type, []))

        # 2. EXECUTION PHASE
        for handler in handlers_snapshot:
            # Skip handlers unsubscribed while a previous handler was running.
            async with self._lock:
                if handler not in self._subscribers.get(event_type, []):
                    continue

            try:
                await handler(data)
            except Exception as e:
                # Log error but keep the bus alive (Fail-soft)
                self._logger.error(
                    f"Error in handler for {event_type.value}: {e}", exc_info=True
                )
