"""
Event Channel

Explicit publish/subscribe channel handed to the search engine, so
completion notifications can be observed (UI refresh, logging) without
a process-wide bus.
"""

from collections import defaultdict
from typing import Any, Callable

from historian.configs import get_logger

logger = get_logger("events")

Listener = Callable[[Any], None]


class EventEmitter:
    """Synchronous fan-out of named events to registered listeners."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def on(self, event: str, callback: Listener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            A callable that unregisters the listener
        """
        self._listeners[event].append(callback)
        return lambda: self.off(event, callback)

    def off(self, event: str, callback: Listener) -> None:
        listeners = self._listeners.get(event)
        if listeners and callback in listeners:
            listeners.remove(callback)

    def once(self, event: str, callback: Listener) -> Callable[[], None]:
        def wrapper(data: Any) -> None:
            self.off(event, wrapper)
            callback(data)

        return self.on(event, wrapper)

    def emit(self, event: str, data: Any) -> None:
        # Copy so listeners may unsubscribe while being called
        for callback in list(self._listeners.get(event, ())):
            try:
                callback(data)
            except Exception as e:
                logger.error(f"Error in event listener for {event}: {e}")

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def remove_all_listeners(self, event: str | None = None) -> None:
        if event is None:
            self._listeners.clear()
        else:
            self._listeners.pop(event, None)
