"""Transport collaborator contract shared by the session and dispatcher."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Protocol

OPEN = "open"
MESSAGE = "message"
CLOSE = "close"

TRANSPORT_EVENTS: tuple[str, ...] = (OPEN, MESSAGE, CLOSE)

# Either an immediate result or a completion signal; never awaited by the
# protocol state machine.
SendResult = bool | Awaitable[bool]


class Transport(Protocol):
    """Reconnecting duplex text channel."""

    def add_listener(self, event: str, callback: Callable[..., Any]) -> None: ...

    def remove_listener(self, event: str, callback: Callable[..., Any]) -> None: ...

    def send(self, data: str) -> SendResult: ...

    def close(self) -> None: ...
