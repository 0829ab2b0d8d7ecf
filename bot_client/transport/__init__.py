"""Transport layer for the bot client.

This package contains all socket IO:

- base: Transport contract consumed by the session and dispatcher
- ws: WebSocket connection helper
- ws_client: WebSocket message iteration
- reconnecting: Reconnecting transport with backoff
"""

from .base import CLOSE, MESSAGE, OPEN, SendResult, Transport
from .reconnecting import ReconnectingWebSocket
from .ws import connect_websocket
from .ws_client import BotWsClient, BotWsMessage, BotWsMessageType

__all__ = [
    "CLOSE",
    "MESSAGE",
    "OPEN",
    "BotWsClient",
    "BotWsMessage",
    "BotWsMessageType",
    "ReconnectingWebSocket",
    "SendResult",
    "Transport",
    "connect_websocket",
]
