"""Reconnecting WebSocket transport for the bot server."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Any

from websockets.exceptions import WebSocketException

from ..errors import (
    BotClientError,
    BotConnectionError,
    BotHandshakeError,
    BotTimeout,
)
from .base import CLOSE, MESSAGE, OPEN, TRANSPORT_EVENTS
from .ws_client import BotWsClient, BotWsMessageType

_LOGGER = logging.getLogger(__name__)


class ReconnectingWebSocket:
    """Duplex text channel that reconnects with exponential backoff.

    Listeners are called synchronously from the connection task:
    ``open()`` after each successful connect, ``message(data)`` for every text
    frame and ``close()`` when an opened connection ends. An exception raised
    by a listener drops the current connection and starts a reconnect cycle.

    Usage:
        transport = ReconnectingWebSocket("ws://bot.local:8080/stream")
        transport.add_listener("message", handle_frame)
        transport.start()
        ...
        transport.close()
        await transport.wait_closed()
    """

    def __init__(
        self,
        url: str,
        *,
        ping_interval: int | None = 20,
        timeout: float = 15.0,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 30.0,
        name: str | None = None,
    ) -> None:
        self.url = url
        self.name = name or url

        self._ping_interval = ping_interval
        self._timeout = timeout
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay

        self._listeners: dict[str, list[Callable[..., Any]]] = {
            event: [] for event in TRANSPORT_EVENTS
        }
        self._ws: BotWsClient | None = None
        self._run_task: asyncio.Task[None] | None = None
        self._send_tasks: set[asyncio.Task[bool]] = set()
        self._retry_attempts = 0
        self._shutdown_requested = False

    @property
    def connected(self) -> bool:
        return self._ws is not None

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def add_listener(self, event: str, callback: Callable[..., Any]) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unknown transport event: {event}")
        self._listeners[event].append(callback)

    def remove_listener(self, event: str, callback: Callable[..., Any]) -> None:
        listeners = self._listeners.get(event)
        if listeners and callback in listeners:
            listeners.remove(callback)

    def _emit(self, event: str, *args: Any) -> None:
        for callback in list(self._listeners[event]):
            callback(*args)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start the connection loop on the running event loop."""
        if self._shutdown_requested:
            raise BotConnectionError("Transport has been closed")
        if self._run_task is None:
            self._run_task = asyncio.get_running_loop().create_task(self._run())

    def close(self) -> None:
        """Stop reconnecting and close the socket."""
        if self._shutdown_requested:
            return
        _LOGGER.info("[%s] Closing transport", self.name)
        self._shutdown_requested = True
        if self._run_task is not None:
            self._run_task.cancel()

    async def wait_closed(self) -> None:
        """Wait until the connection loop has finished."""
        if self._run_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._run_task

    async def _run(self) -> None:
        try:
            while not self._shutdown_requested:
                await self._connect_once()
                if self._shutdown_requested:
                    break

                delay = min(
                    self._retry_base_delay * (2**self._retry_attempts),
                    self._retry_max_delay,
                )
                self._retry_attempts += 1
                _LOGGER.info(
                    "[%s] Reconnecting in %.1fs (attempt %d)",
                    self.name,
                    delay,
                    self._retry_attempts,
                )
                await asyncio.sleep(delay)
        except asyncio.CancelledError:
            _LOGGER.debug("[%s] Connection loop cancelled", self.name)
            raise

    async def _connect_once(self) -> None:
        """Connect, pump frames to listeners until the connection ends."""
        ws_client = BotWsClient()
        try:
            _LOGGER.info(
                "[%s] Connecting to %s (attempt #%d)",
                self.name,
                self.url,
                self._retry_attempts + 1,
            )
            await ws_client.connect(
                self.url,
                ping_interval=self._ping_interval,
                timeout=self._timeout,
            )
        except BotTimeout:
            _LOGGER.warning("[%s] Connection timeout - server unreachable", self.name)
            return
        except BotHandshakeError as err:
            _LOGGER.error("[%s] WebSocket handshake failed: %s", self.name, err)
            return
        except BotConnectionError as err:
            _LOGGER.warning("[%s] Connection failed: %s", self.name, err)
            return

        self._ws = ws_client
        self._retry_attempts = 0
        message_count = 0
        try:
            self._emit(OPEN)
            async for msg in ws_client:
                if msg.type is BotWsMessageType.TEXT:
                    message_count += 1
                    self._emit(MESSAGE, msg.data)
                elif msg.type is BotWsMessageType.CLOSED:
                    _LOGGER.info("[%s] WebSocket closed by server", self.name)
                    break
                elif msg.type is BotWsMessageType.ERROR:
                    _LOGGER.error("[%s] WebSocket error: %s", self.name, msg.data)
                    break
        except asyncio.CancelledError:
            _LOGGER.debug(
                "[%s] Listener cancelled (%d messages)", self.name, message_count
            )
            raise
        except BotClientError as err:
            _LOGGER.warning("[%s] Dropping connection: %s", self.name, err)
        except Exception as err:
            _LOGGER.exception("[%s] Unexpected error: %s", self.name, err)
        finally:
            self._ws = None
            try:
                await asyncio.wait_for(ws_client.close(), timeout=2.0)
            except TimeoutError:
                _LOGGER.warning("[%s] WebSocket close timed out", self.name)
            except (OSError, WebSocketException) as err:
                _LOGGER.debug("[%s] WebSocket close failed: %s", self.name, err)
            self._emit(CLOSE)

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    def send(self, data: str) -> asyncio.Task[bool]:
        """Queue a text frame; the task resolves to False if it was not sent."""
        task = asyncio.get_running_loop().create_task(self._send(data))
        # Keep a reference until done so fire-and-forget sends are not collected
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)
        return task

    async def _send(self, data: str) -> bool:
        ws_client = self._ws
        if ws_client is None:
            _LOGGER.debug("[%s] Send skipped: not connected", self.name)
            return False
        try:
            await ws_client.send_text(data)
            return True
        except (BotClientError, WebSocketException, OSError) as err:
            _LOGGER.error("[%s] Failed to send frame: %s", self.name, err)
            return False
