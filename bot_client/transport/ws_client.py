"""WebSocket client wrapper for one bot server connection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed

from ..errors import BotConnectionError
from .ws import connect_websocket

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

_LOGGER = logging.getLogger(__name__)


class BotWsMessageType(Enum):
    """Normalized WebSocket message types."""

    TEXT = "text"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class BotWsMessage:
    """Normalized WebSocket message payload."""

    type: BotWsMessageType
    data: str | None = None


class BotWsClient:
    """Wrapper around the websockets library for the bot server."""

    def __init__(self) -> None:
        self._ws: ClientConnection | None = None

    @property
    def is_open(self) -> bool:
        return self._ws is not None

    async def connect(
        self,
        url: str,
        *,
        ping_interval: int | None = 20,
        timeout: float = 15.0,
    ) -> None:
        """Connect to the server websocket."""
        self._ws = await connect_websocket(
            url,
            ping_interval=ping_interval,
            timeout=timeout,
        )

    async def close(self) -> None:
        """Close the websocket connection."""
        if self._ws is not None:
            ws, self._ws = self._ws, None
            await ws.close()

    async def send_text(self, data: str) -> None:
        """Send one text frame."""
        if self._ws is None:
            raise BotConnectionError("WebSocket is not connected")
        await self._ws.send(data)

    def __aiter__(self) -> AsyncIterator[BotWsMessage]:
        if self._ws is None:
            raise BotConnectionError("WebSocket is not connected")
        return self._iter_messages()

    async def _iter_messages(self) -> AsyncIterator[BotWsMessage]:
        if self._ws is None:
            raise BotConnectionError("WebSocket is not connected")

        try:
            async for msg in self._ws:
                normalized = self._normalize_message(msg)
                if normalized is None:
                    continue
                yield normalized
        except ConnectionClosed:
            yield BotWsMessage(type=BotWsMessageType.CLOSED)
        except Exception as err:
            _LOGGER.debug("WebSocket receive failed: %r", err)
            yield BotWsMessage(type=BotWsMessageType.ERROR, data=str(err))
        else:
            # Normal iteration completion means the peer closed gracefully.
            yield BotWsMessage(type=BotWsMessageType.CLOSED)

    @staticmethod
    def _normalize_message(msg: Any) -> BotWsMessage | None:
        """Normalize a received frame; binary frames are not part of the protocol."""
        if isinstance(msg, (bytes, bytearray, memoryview)):
            return None
        return BotWsMessage(BotWsMessageType.TEXT, str(msg))
