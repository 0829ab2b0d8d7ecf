"""Client configuration."""

from __future__ import annotations

from dataclasses import dataclass
from os import PathLike
from typing import Any

import aiohttp

from .bootstrap import DescriptorKeyProvider, read_descriptor, resolve_endpoint
from .events import DEFAULT_MAX_LISTENERS
from .protocol import SUBSCRIPTION_CATEGORIES
from .scheduler import DEFAULT_FRAME_INTERVAL
from .session import KeyProvider


@dataclass
class BotClientConfig:
    """Configuration for a bot client.

    Attributes:
        url: Stream WebSocket endpoint
        key: Shared authentication secret (None defers authentication)
        key_provider: Called on each connect to refresh ``key``
        name: Label used in log messages (default: the URL)
        subscriptions: Message categories requested on connect
        max_listeners: Soft per-topic listener limit, None for unbounded
        frame_interval: Delay of the coalesced frame tick (seconds)
        headless: Disable frame coalescing entirely
        ping_interval: WebSocket keepalive interval, None to disable
        connect_timeout: WebSocket connect timeout (seconds)
        retry_base_delay: Base reconnect delay (seconds)
        retry_max_delay: Maximum reconnect delay (seconds)
    """

    url: str
    key: str | None = None
    key_provider: KeyProvider | None = None
    name: str | None = None
    subscriptions: tuple[str, ...] = SUBSCRIPTION_CATEGORIES
    max_listeners: int | None = DEFAULT_MAX_LISTENERS
    frame_interval: float = DEFAULT_FRAME_INTERVAL
    headless: bool = False
    ping_interval: int | None = 20
    connect_timeout: float = 15.0
    retry_base_delay: float = 1.0
    retry_max_delay: float = 30.0

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("url is required")
        if self.frame_interval < 0:
            raise ValueError("frame_interval must not be negative")
        if self.retry_base_delay <= 0 or self.retry_max_delay < self.retry_base_delay:
            raise ValueError("retry delays must satisfy 0 < base <= max")

    @property
    def label(self) -> str:
        return self.name or self.url

    @classmethod
    async def from_descriptor(
        cls,
        path: str | PathLike[str],
        session: aiohttp.ClientSession,
        **overrides: Any,
    ) -> BotClientConfig:
        """Build a config from a descriptor file.

        The stream endpoint is looked up once; the key is re-read from the
        descriptor on every connect. Keyword overrides take precedence over
        the values read from the descriptor.

        Raises:
            BotBootstrapError: If the descriptor or the lookup fails.
        """
        descriptor = read_descriptor(path)
        url = await resolve_endpoint(session, descriptor)
        settings: dict[str, Any] = {
            "url": url,
            "key": descriptor.key,
            "key_provider": DescriptorKeyProvider(path, key=descriptor.key),
        }
        settings.update(overrides)
        return cls(**settings)
