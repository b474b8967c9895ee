"""
Event bus for synchronization events.

The engine publishes `SyncEvent`s here; hosts subscribe to observe update
passes, coalescing and mode switches without reaching into engine state.
"""

import logging
from collections import defaultdict, deque
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Type, Union

from .events import SyncEvent

logger = logging.getLogger(__name__)

Listener = Callable[[SyncEvent], Awaitable[None]]
EventKey = Union[str, Type[SyncEvent]]


def _key(event_type: EventKey) -> str:
    return event_type if isinstance(event_type, str) else event_type.__name__


class EventBus:
    """
    Event bus routing events to async listeners by event class name.

    Keeps a bounded history of emitted events. Listeners that keep failing
    are dropped after `max_listener_errors` errors.
    """

    def __init__(self, max_history: int = 1000, max_listener_errors: int = 5):
        self.events: Deque[SyncEvent] = deque(maxlen=max_history)
        self.listeners: Dict[str, List[Listener]] = defaultdict(list)
        self._listener_errors: Dict[str, int] = defaultdict(int)
        self._max_listener_errors = max_listener_errors

    async def emit(self, event: SyncEvent) -> None:
        """
        Emit an event to all listeners of its type.

        Args:
            event: The event object to emit
        """
        self.events.append(event)
        event_type = type(event).__name__

        for listener in list(self.listeners.get(event_type, [])):
            try:
                await listener(event)
            except Exception as e:
                listener_id = f"{event_type}:{id(listener)}"
                self._listener_errors[listener_id] += 1
                logger.error(f"Error in sync event listener for {event_type}: {e}")

                if self._listener_errors[listener_id] >= self._max_listener_errors:
                    logger.warning(
                        f"Removing failing listener for {event_type} after "
                        f"{self._max_listener_errors} errors"
                    )
                    self.listeners[event_type].remove(listener)

    def subscribe(self, event_type: EventKey, listener: Listener) -> None:
        """
        Subscribe to events of a specific type.

        Args:
            event_type: Event class or its name
            listener: Async callable to handle events
        """
        key = _key(event_type)
        if listener not in self.listeners[key]:
            self.listeners[key].append(listener)
            logger.debug(f"Subscribed listener to {key}")

    def unsubscribe(self, event_type: EventKey, listener: Listener) -> None:
        key = _key(event_type)
        if listener in self.listeners.get(key, []):
            self.listeners[key].remove(listener)
            logger.debug(f"Unsubscribed listener from {key}")

    def history(self, event_type: Optional[EventKey] = None, **attrs: Any) -> List[SyncEvent]:
        """
        Return emitted events, optionally filtered by type and attribute values.

        Example:
            bus.history(UpdatePassEvent, status="completed")
        """
        key = _key(event_type) if event_type is not None else None
        return [
            e for e in self.events
            if (key is None or type(e).__name__ == key)
            and all(getattr(e, name, None) == value for name, value in attrs.items())
        ]

    def count(self, event_type: Optional[EventKey] = None, **attrs: Any) -> int:
        return len(self.history(event_type, **attrs))

    def clear(self) -> None:
        """Clear the event history."""
        self.events.clear()
