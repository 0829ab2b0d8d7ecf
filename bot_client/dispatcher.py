"""Inbound frame decoding and notification fan-out."""

from __future__ import annotations

import json
import logging
from typing import Any

from .clock import ClockSync
from .errors import BotProtocolError
from .events import EventBus, Topic
from .model import BotModel
from .protocol import (
    AuthChallengeEnvelope,
    AuthStatusEnvelope,
    ErrorEnvelope,
    MessageKind,
    StreamEnvelope,
    decode_envelope,
)
from .scheduler import FrameScheduler
from .session import SessionController

_LOGGER = logging.getLogger(__name__)


class Dispatcher:
    """Decode frames, fold stream bursts into the model and notify subscribers.

    Frames are processed to completion one at a time. The only deferred work
    is the ``frame`` notification, which is coalesced so at most one tick is
    pending; every burst that lands before the tick fires shares it. Without a
    scheduler (headless) no ``frame`` notifications are produced.
    """

    def __init__(
        self,
        session: SessionController,
        model: BotModel,
        events: EventBus,
        *,
        clock: ClockSync | None = None,
        scheduler: FrameScheduler | None = None,
        name: str = "bot",
    ) -> None:
        self._session = session
        self._model = model
        self._events = events
        self._clock = clock or ClockSync()
        self._scheduler = scheduler
        self._frame_request: Any = None
        self._closed = False
        self.name = name

    @property
    def clock(self) -> ClockSync:
        return self._clock

    @property
    def frame_pending(self) -> bool:
        return self._frame_request is not None

    def handle_frame(self, data: str | bytes) -> None:
        """Process one transport frame.

        Raises:
            BotServerError: If the server reported an error.
        """
        if self._closed:
            return

        try:
            obj = json.loads(data)
        except ValueError as err:
            _LOGGER.warning("[%s] Undecodable frame: %s", self.name, err)
            return

        try:
            envelope = decode_envelope(obj)
        except BotProtocolError as err:
            _LOGGER.warning("[%s] Invalid frame: %s", self.name, err)
            self._events.emit(Topic.LOG, obj)
            return

        if isinstance(envelope, StreamEnvelope):
            self._handle_stream(envelope)
        elif isinstance(envelope, ErrorEnvelope):
            # The server can generate errors, passed on as exceptions
            self._events.emit(Topic.LOG, envelope.raw)
            self._session.handle_error(envelope.error)
        elif isinstance(envelope, AuthChallengeEnvelope):
            self._events.emit(Topic.LOG, envelope.raw)
            self._session.handle_challenge(envelope.challenge)
        elif isinstance(envelope, AuthStatusEnvelope):
            self._events.emit(Topic.LOG, envelope.raw)
            self._session.handle_auth_status(envelope.status)
        else:
            self._events.emit(Topic.LOG, obj)
            _LOGGER.warning("[%s] Unrecognized message: %s", self.name, obj)

    def _handle_stream(self, envelope: StreamEnvelope) -> None:
        burst = envelope.messages
        self._clock.annotate(burst)

        for message in burst:
            self._model.fold(message)
            if message.kind is MessageKind.CONFIG_IS_CURRENT:
                self._events.emit(Topic.CONFIG, message)
            elif message.kind is MessageKind.UNHANDLED_GIMBAL_PACKET:
                self._events.emit(Topic.GIMBAL, message)

        # Raw access to the whole burst
        self._events.emit(Topic.MESSAGES, burst)

        self._request_frame()

    # -------------------------------------------------------------------------
    # Frame coalescing
    # -------------------------------------------------------------------------

    def _request_frame(self) -> None:
        # A listener may have torn the client down mid-burst
        if self._closed or self._scheduler is None or self._frame_request is not None:
            return
        self._frame_request = self._scheduler.request_tick(self._emit_frame)

    def _emit_frame(self) -> None:
        self._frame_request = None
        if self._closed:
            return
        self._events.emit(Topic.FRAME, self._model)

    def close(self) -> None:
        """Cancel any pending frame tick and stop processing frames."""
        self._closed = True
        if self._frame_request is not None and self._scheduler is not None:
            self._scheduler.cancel_tick(self._frame_request)
        self._frame_request = None
