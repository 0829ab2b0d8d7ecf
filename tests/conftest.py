"""Pytest configuration and fixtures for bot_client tests."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from bot_client.events import EventBus, Topic


class FakeTransport:
    """In-memory transport recording sends and driving listener events."""

    def __init__(self, *, send_result: bool = True) -> None:
        self.listeners: dict[str, list[Callable[..., Any]]] = {
            "open": [],
            "message": [],
            "close": [],
        }
        self.sent: list[str] = []
        self.send_result = send_result
        self.closed = False

    def add_listener(self, event: str, callback: Callable[..., Any]) -> None:
        self.listeners[event].append(callback)

    def remove_listener(self, event: str, callback: Callable[..., Any]) -> None:
        if callback in self.listeners[event]:
            self.listeners[event].remove(callback)

    def send(self, data: str) -> bool:
        self.sent.append(data)
        return self.send_result

    def close(self) -> None:
        self.closed = True

    # Simulation helpers

    def open(self) -> None:
        for callback in list(self.listeners["open"]):
            callback()

    def receive(self, frame: dict[str, Any] | str) -> None:
        data = frame if isinstance(frame, str) else json.dumps(frame)
        for callback in list(self.listeners["message"]):
            callback(data)

    def drop(self) -> None:
        for callback in list(self.listeners["close"]):
            callback()

    @property
    def sent_json(self) -> list[dict[str, Any]]:
        return [json.loads(item) for item in self.sent]


class ManualScheduler:
    """Frame scheduler whose ticks fire only when the test says so."""

    def __init__(self) -> None:
        self.pending: dict[int, Callable[[], None]] = {}
        self.requests = 0
        self.cancelled: list[int] = []

    def request_tick(self, callback: Callable[[], None]) -> int:
        self.requests += 1
        handle = self.requests
        self.pending[handle] = callback
        return handle

    def cancel_tick(self, handle: int) -> None:
        self.cancelled.append(handle)
        self.pending.pop(handle, None)

    def tick(self) -> None:
        callbacks = list(self.pending.values())
        self.pending.clear()
        for callback in callbacks:
            callback()


class Recorder:
    """Collect notifications per topic."""

    def __init__(self, events: EventBus) -> None:
        self.received: dict[Topic, list[Any]] = {topic: [] for topic in Topic}
        for topic in Topic:
            events.on(topic, self.received[topic].append)

    def __getitem__(self, topic: str) -> list[Any]:
        return self.received[Topic(topic)]


def stream_message(variant: str, payload: Any, timestamp: int) -> dict[str, Any]:
    """Build one wire-format stream message."""
    return {"message": {variant: payload}, "timestamp": timestamp}


def stream_frame(*messages: dict[str, Any]) -> dict[str, Any]:
    return {"Stream": list(messages)}


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def recorder(events: EventBus) -> Recorder:
    return Recorder(events)


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock aiohttp ClientSession."""
    import aiohttp

    return MagicMock(spec=aiohttp.ClientSession)


def create_mock_response(
    status: int = 200,
    json_data: Any = None,
    json_error: Exception | None = None,
) -> AsyncMock:
    """Create a configured mock response.

    Args:
        status: HTTP status code
        json_data: Data to return from json() call
        json_error: Exception raised by json() instead

    Returns:
        Configured AsyncMock response usable as an async context manager
    """
    response = AsyncMock()
    response.status = status

    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = json_data

    response.__aenter__.return_value = response
    response.__aexit__.return_value = None

    return response
