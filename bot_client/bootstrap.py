"""Endpoint and key bootstrap from a local connection descriptor.

A descriptor file holds one line: a URL whose ``k`` query parameter is the
shared authentication key. Fetching that URL returns a JSON document whose
``websocket`` field is the stream endpoint.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from os import PathLike
from pathlib import Path
from urllib.parse import parse_qs, urlsplit

import aiohttp

from .errors import (
    BotBootstrapError,
    BotConnectionError,
    BotResponseError,
    BotTimeout,
)

_LOGGER = logging.getLogger(__name__)

KEY_PARAM = "k"
ENDPOINT_FIELD = "websocket"


@dataclass(frozen=True)
class Descriptor:
    """Parsed connection descriptor."""

    url: str
    key: str


def parse_descriptor(text: str) -> Descriptor:
    """Parse descriptor text; the first non-blank line is the URL."""
    line = next((ln.strip() for ln in text.splitlines() if ln.strip()), "")
    if not line:
        raise BotBootstrapError("Descriptor is empty")

    parts = urlsplit(line)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise BotBootstrapError(f"Descriptor does not hold an http(s) URL: {line!r}")

    keys = parse_qs(parts.query).get(KEY_PARAM)
    if not keys or not keys[0]:
        raise BotBootstrapError(f"Descriptor URL has no {KEY_PARAM!r} parameter")
    return Descriptor(url=line, key=keys[0])


def read_descriptor(path: str | PathLike[str]) -> Descriptor:
    """Read and parse a descriptor file.

    Raises:
        BotBootstrapError: If the file cannot be read or holds no valid URL.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        raise BotBootstrapError(f"Cannot read descriptor {path}: {err}") from err
    return parse_descriptor(text)


class DescriptorKeyProvider:
    """Re-read the authentication key from a descriptor on every call.

    A failed re-read keeps the last good key so a transient file problem does
    not drop an otherwise healthy session.
    """

    def __init__(self, path: str | PathLike[str], *, key: str | None = None) -> None:
        self._path = path
        self._key = key

    def __call__(self) -> str | None:
        try:
            self._key = read_descriptor(self._path).key
        except BotBootstrapError as err:
            _LOGGER.warning("Keeping previous key, descriptor re-read failed: %s", err)
        return self._key


async def resolve_endpoint(
    session: aiohttp.ClientSession,
    descriptor: Descriptor,
    *,
    timeout: float = 10.0,
) -> str:
    """Look up the stream endpoint advertised for a descriptor.

    Raises:
        BotBootstrapError: Wrapping the timeout, network or response failure.
    """
    try:
        return await _fetch_endpoint(session, descriptor.url, timeout)
    except (BotTimeout, BotConnectionError, BotResponseError) as err:
        raise BotBootstrapError(f"Endpoint lookup failed: {err}") from err


async def _fetch_endpoint(
    session: aiohttp.ClientSession, url: str, timeout: float
) -> str:
    try:
        async with session.get(
            url,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as resp:
            if resp.status != 200:
                raise BotResponseError(
                    resp.status, f"Endpoint lookup returned HTTP {resp.status}"
                )
            data = await resp.json(content_type=None)
    except TimeoutError as err:
        raise BotTimeout("Endpoint lookup timed out") from err
    except aiohttp.ClientError as err:
        raise BotConnectionError("Endpoint lookup request failed") from err
    except ValueError as err:
        raise BotResponseError(200, "Endpoint lookup returned invalid JSON") from err

    endpoint = data.get(ENDPOINT_FIELD) if isinstance(data, dict) else None
    if not isinstance(endpoint, str) or not endpoint:
        raise BotResponseError(200, f"Endpoint lookup has no {ENDPOINT_FIELD!r} field")
    _LOGGER.debug("Resolved endpoint %s", endpoint)
    return endpoint
