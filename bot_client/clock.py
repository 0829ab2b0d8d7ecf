"""Correlation of server-relative timestamps with local wall-clock time."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence

from .protocol import Message

_LOGGER = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class ClockSync:
    """Track the offset between server timestamps and local milliseconds.

    One offset is kept per epoch. The offset is anchored on the last message
    of the first burst of an epoch; a new epoch starts when a burst ends on a
    timestamp older than the previous burst's last timestamp (server restart
    or clock adjustment).
    """

    def __init__(self, *, clock: Callable[[], int] = _now_ms) -> None:
        self._clock = clock
        self._offset: int | None = None
        self._last_timestamp: int | None = None

    @property
    def offset(self) -> int | None:
        return self._offset

    @property
    def last_timestamp(self) -> int | None:
        return self._last_timestamp

    def sync(self, burst: Sequence[Message]) -> int:
        """Update epoch state from a burst and return the offset to apply."""
        if not burst:
            raise ValueError("burst must contain at least one message")

        anchor = burst[-1].timestamp
        if self._last_timestamp is not None and anchor < self._last_timestamp:
            _LOGGER.debug(
                "Server timestamps went backward (%d < %d), starting new epoch",
                anchor,
                self._last_timestamp,
            )
            self._offset = None
        self._last_timestamp = anchor

        if self._offset is None:
            self._offset = self._clock() - anchor
        return self._offset

    def annotate(self, burst: Sequence[Message]) -> int:
        """Sync on the burst and set ``local_timestamp`` on every message."""
        offset = self.sync(burst)
        for message in burst:
            message.local_timestamp = offset + message.timestamp
        return offset
