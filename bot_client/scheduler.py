"""Frame tick scheduling for coalesced UI updates."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Protocol

_LOGGER = logging.getLogger(__name__)

DEFAULT_FRAME_INTERVAL = 1 / 60


class FrameScheduler(Protocol):
    """Rendering-host capability: run a callback on the next tick."""

    def request_tick(self, callback: Callable[[], None]) -> Any:
        """Schedule callback once.

        Returns:
            A handle for ``cancel_tick``, or None when no tick was scheduled.
        """

    def cancel_tick(self, handle: Any) -> None:
        """Cancel a tick that has not fired yet."""


class LoopFrameScheduler:
    """Frame scheduler backed by an asyncio event loop.

    Ticks fire ``interval`` seconds after being requested, which batches every
    frame that arrives inside one display refresh. Without an explicit loop the
    running loop is used; with neither, the tick is dropped.
    """

    def __init__(
        self,
        *,
        interval: float = DEFAULT_FRAME_INTERVAL,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._interval = interval
        self._loop = loop

    def request_tick(self, callback: Callable[[], None]) -> asyncio.TimerHandle | None:
        loop = self._loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                _LOGGER.warning("No running event loop, frame tick dropped")
                return None
        return loop.call_later(self._interval, callback)

    def cancel_tick(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()
