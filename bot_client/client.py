"""High-level bot client.

Wires the transport, session state machine and dispatcher together:

    transport open    -> SessionController.handle_open (subscribe)
    transport message -> Dispatcher.handle_frame (decode, fold, notify)
    transport close   -> SessionController.handle_close

Subscribers listen on the topics in :class:`bot_client.events.Topic`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from .clock import ClockSync
from .config import BotClientConfig
from .dispatcher import Dispatcher
from .events import EventBus, Listener, Topic
from .model import BotModel
from .protocol import encode_frame
from .scheduler import FrameScheduler, LoopFrameScheduler
from .session import SessionController
from .transport.base import CLOSE, MESSAGE, OPEN, SendResult, Transport
from .transport.reconnecting import ReconnectingWebSocket

_LOGGER = logging.getLogger(__name__)


class BotClient:
    """Client for a bot server stream.

    Usage:
        client = BotClient(BotClientConfig(url="ws://bot.local:8080/stream", key="secret"))
        client.on("auth", lambda _: print("authenticated"))
        client.on("frame", render)
        client.start()
        ...
        client.destroy()
    """

    def __init__(
        self,
        config: BotClientConfig,
        *,
        transport: Transport | None = None,
        scheduler: FrameScheduler | None = None,
        clock: ClockSync | None = None,
    ) -> None:
        self.config = config
        self.name = config.label

        self.events = EventBus(max_listeners=config.max_listeners)
        self.model = BotModel()

        if transport is None:
            transport = ReconnectingWebSocket(
                config.url,
                ping_interval=config.ping_interval,
                timeout=config.connect_timeout,
                retry_base_delay=config.retry_base_delay,
                retry_max_delay=config.retry_max_delay,
                name=self.name,
            )
        self._transport = transport

        if scheduler is None and not config.headless:
            scheduler = LoopFrameScheduler(interval=config.frame_interval)

        self.session = SessionController(
            transport,
            self.events,
            key=config.key,
            key_provider=config.key_provider,
            subscriptions=config.subscriptions,
            name=self.name,
        )
        self.dispatcher = Dispatcher(
            self.session,
            self.model,
            self.events,
            clock=clock,
            scheduler=None if config.headless else scheduler,
            name=self.name,
        )

        self._handlers: tuple[tuple[str, Callable[..., Any]], ...] = (
            (OPEN, self._handle_open),
            (MESSAGE, self.dispatcher.handle_frame),
            (CLOSE, self._handle_close),
        )
        for event, handler in self._handlers:
            transport.add_listener(event, handler)
        self._destroyed = False

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self.session.connected

    @property
    def authenticated(self) -> bool:
        return self.session.authenticated

    @property
    def transport(self) -> Transport:
        return self._transport

    def start(self) -> None:
        """Start the transport connection loop, if it has one."""
        start = getattr(self._transport, "start", None)
        if callable(start):
            start()

    def on(self, topic: Topic | str, callback: Listener) -> Callable[[], None]:
        """Subscribe to a topic; returns an unsubscribe callable."""
        return self.events.on(topic, callback)

    def off(self, topic: Topic | str, callback: Listener) -> None:
        self.events.off(topic, callback)

    def send(self, payload: dict[str, Any]) -> SendResult:
        """Send a JSON frame to the server without waiting for completion."""
        return self._transport.send(encode_frame(payload))

    def destroy(self) -> None:
        """Detach from the transport, close it and silence all notifications."""
        if self._destroyed:
            return
        self._destroyed = True
        _LOGGER.info("[%s] Destroying client", self.name)

        for event, handler in self._handlers:
            self._transport.remove_listener(event, handler)
        self.dispatcher.close()
        self.events.clear()
        self._transport.close()
        self.session.handle_close()

    # -------------------------------------------------------------------------
    # Transport events
    # -------------------------------------------------------------------------

    def _handle_open(self, *args: Any) -> None:
        _LOGGER.info("[%s] Connected, subscribing", self.name)
        self.session.handle_open(*args)

    def _handle_close(self, *args: Any) -> None:
        _LOGGER.info("[%s] Disconnected", self.name)
        self.session.handle_close(*args)
