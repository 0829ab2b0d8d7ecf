"""Connection and authentication state machine for the bot session.

The server issues a random challenge after every connect. The session answers
with an HMAC-SHA512 digest of the challenge keyed by the shared secret, and
the server replies with an ``AuthStatus`` result. States:

    disconnected -> connected (unauthenticated) -> connected (authenticated)

with a return to ``disconnected`` on transport close from any state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from .errors import BotServerError
from .events import EventBus, Topic
from .protocol import (
    SUBSCRIPTION_CATEGORIES,
    build_auth,
    build_subscription,
    compute_digest,
    encode_frame,
)
from .transport.base import SendResult, Transport

_LOGGER = logging.getLogger(__name__)

KeyProvider = Callable[[], str | None]


class SessionController:
    """Track connected/authenticated status and run the auth handshake.

    Usage:
        session = SessionController(transport, events, key="secret")
        transport.add_listener("open", session.handle_open)
        transport.add_listener("close", session.handle_close)
    """

    def __init__(
        self,
        transport: Transport,
        events: EventBus,
        *,
        key: str | None = None,
        key_provider: KeyProvider | None = None,
        subscriptions: Sequence[str] = SUBSCRIPTION_CATEGORIES,
        name: str = "bot",
    ) -> None:
        """Initialize session.

        Args:
            transport: Channel used for outbound frames
            events: Bus receiving ``auth`` and ``log`` notifications
            key: Shared authentication secret
            key_provider: Called on every connect to refresh the key
            subscriptions: Message categories requested on connect
            name: Label used in log messages
        """
        self._transport = transport
        self._events = events
        self._key_provider = key_provider
        self._subscriptions = tuple(subscriptions)
        self.key = key
        self.name = name

        self._connected = False
        self._authenticated = False
        self._pending_challenge: bytes | None = None

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def authenticated(self) -> bool:
        """True only while connected and accepted by the server."""
        return self._authenticated

    @property
    def pending_challenge(self) -> bytes | None:
        return self._pending_challenge

    @property
    def state(self) -> str:
        """Human-readable state name."""
        if not self._connected:
            return "disconnected"
        return "authenticated" if self._authenticated else "connected"

    # -------------------------------------------------------------------------
    # Transport events
    # -------------------------------------------------------------------------

    def handle_open(self, *_: Any) -> None:
        """Subscribe to the message stream and wait for a fresh challenge."""
        if self._key_provider is not None:
            self.key = self._key_provider()

        self.send(build_subscription(self._subscriptions))
        self._set_state(connected=True, authenticated=False)
        self._pending_challenge = None

    def handle_close(self, *_: Any) -> None:
        self._set_state(connected=False, authenticated=False)

    # -------------------------------------------------------------------------
    # Control messages
    # -------------------------------------------------------------------------

    def handle_challenge(self, challenge: bytes) -> SendResult | None:
        """Store the challenge and answer it if a key is available.

        Returns:
            The send result, or None when no key is configured yet.
        """
        self._pending_challenge = challenge
        return self.authenticate()

    def authenticate(self) -> SendResult | None:
        """Answer the pending challenge with the current key."""
        challenge = self._pending_challenge
        if not self.key or challenge is None:
            _LOGGER.debug(
                "[%s] Auth deferred: %s",
                self.name,
                "no key" if not self.key else "no challenge",
            )
            return None

        digest = compute_digest(challenge, self.key)
        _LOGGER.debug("[%s] Auth digest sent", self.name)
        return self.send(build_auth(digest))

    def handle_auth_status(self, status: bool) -> None:
        was_authenticated = self._authenticated
        self._authenticated = status is True and self._connected
        if status is True and not self._connected:
            _LOGGER.warning("[%s] AuthStatus received while disconnected", self.name)

        if self._authenticated and not was_authenticated:
            _LOGGER.info("[%s] Authenticated", self.name)
            self._events.emit(Topic.AUTH, True)
        elif was_authenticated and not self._authenticated:
            _LOGGER.warning("[%s] Authentication revoked by server", self.name)

    def handle_error(self, payload: Any) -> None:
        """Log a server-reported error and raise it to the caller."""
        _LOGGER.error("[%s] Server error: %s", self.name, payload)
        raise BotServerError(payload)

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    def send(self, payload: dict[str, Any]) -> SendResult:
        """Encode and hand a frame to the transport without waiting on it."""
        return self._transport.send(encode_frame(payload))

    def _set_state(self, *, connected: bool, authenticated: bool) -> None:
        previous = self.state
        self._connected = connected
        self._authenticated = authenticated and connected
        if previous != self.state:
            _LOGGER.debug("[%s] State: %s → %s", self.name, previous, self.state)
