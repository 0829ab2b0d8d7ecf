"""Topic-keyed publish/subscribe registry for client notifications."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

_LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_LISTENERS = 100


class Topic(str, Enum):
    """Notification topics published by the client."""

    LOG = "log"
    CONFIG = "config"
    GIMBAL = "gimbal"
    MESSAGES = "messages"
    FRAME = "frame"
    AUTH = "auth"


Listener = Callable[[Any], None]


class EventBus:
    """Many-listeners-per-topic event fan-out.

    ``max_listeners`` is a soft limit: registering beyond it logs a warning
    once per topic (likely a subscription leak) but still succeeds. Pass
    ``None`` for an unbounded registry.
    """

    def __init__(self, *, max_listeners: int | None = DEFAULT_MAX_LISTENERS) -> None:
        self._max_listeners = max_listeners
        self._listeners: dict[Topic, list[Listener]] = {}
        self._warned: set[Topic] = set()

    def on(self, topic: Topic | str, callback: Listener) -> Callable[[], None]:
        """Register a listener and return a callable that unregisters it."""
        key = Topic(topic)
        listeners = self._listeners.setdefault(key, [])
        listeners.append(callback)

        if (
            self._max_listeners is not None
            and len(listeners) > self._max_listeners
            and key not in self._warned
        ):
            self._warned.add(key)
            _LOGGER.warning(
                "%d listeners registered for %r (max %d), possible leak",
                len(listeners),
                key.value,
                self._max_listeners,
            )

        return lambda: self.off(key, callback)

    def off(self, topic: Topic | str, callback: Listener) -> None:
        """Unregister a listener; unknown listeners are ignored."""
        listeners = self._listeners.get(Topic(topic))
        if listeners and callback in listeners:
            listeners.remove(callback)

    def emit(self, topic: Topic | str, payload: Any) -> None:
        """Deliver payload to every listener of the topic, in registration order."""
        key = Topic(topic)
        # Copy so listeners may unsubscribe while being notified
        for callback in list(self._listeners.get(key, ())):
            try:
                callback(payload)
            except Exception as err:
                _LOGGER.exception("%s listener error: %s", key.value, err)

    def listener_count(self, topic: Topic | str) -> int:
        return len(self._listeners.get(Topic(topic), ()))

    def clear(self) -> None:
        """Drop every registered listener."""
        self._listeners.clear()
        self._warned.clear()
