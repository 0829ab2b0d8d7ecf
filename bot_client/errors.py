"""Client error types for bot server interactions."""

from __future__ import annotations

from typing import Any


class BotClientError(Exception):
    """Base error for bot client failures."""


class BotTimeout(BotClientError):
    """Timeout while communicating with the server."""


class BotConnectionError(BotClientError):
    """Network connection to the server failed."""


class BotHandshakeError(BotClientError):
    """WebSocket handshake failed."""


class BotResponseError(BotClientError):
    """HTTP response error from the endpoint lookup."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status


class BotProtocolError(BotClientError):
    """Frame content does not match the wire protocol."""


class BotServerError(BotClientError):
    """The server reported an error; the session is broken until reconnect."""

    def __init__(self, payload: Any) -> None:
        super().__init__(f"Server error: {payload!r}")
        self.payload = payload


class BotBootstrapError(BotClientError):
    """Descriptor or endpoint lookup failed during startup."""
