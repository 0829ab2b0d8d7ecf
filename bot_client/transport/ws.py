"""WebSocket connection helper for the bot server transport."""

from __future__ import annotations

import asyncio

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    InvalidHandshake,
    InvalidURI,
    WebSocketException,
)

from ..errors import (
    BotConnectionError,
    BotHandshakeError,
    BotTimeout,
)


async def connect_websocket(
    url: str,
    *,
    ping_interval: int | None = 20,
    timeout: float = 15.0,
) -> ClientConnection:
    """Open a WebSocket connection to the bot server.

    Args:
        url: ws:// or wss:// endpoint
        ping_interval: Interval for keepalive ping frames, None to disable
        timeout: Connection timeout in seconds

    Raises:
        BotTimeout: If the connection did not complete in time
        BotHandshakeError: If the URL is invalid or the upgrade was refused
        BotConnectionError: On any other network failure
    """
    try:
        return await asyncio.wait_for(
            websockets.connect(
                url,
                ping_interval=ping_interval,
                close_timeout=5,
                max_size=None,
            ),
            timeout=timeout,
        )
    except TimeoutError as err:
        raise BotTimeout("WebSocket connection timed out") from err
    except (InvalidHandshake, InvalidURI) as err:
        raise BotHandshakeError("WebSocket handshake failed") from err
    except (OSError, WebSocketException) as err:
        raise BotConnectionError("WebSocket connection failed") from err
