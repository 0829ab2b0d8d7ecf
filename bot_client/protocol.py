"""Protocol helpers for bot server frames.

Inbound frames are JSON objects holding exactly one of ``Stream``, ``Error``,
``Auth`` or ``AuthStatus``. Stream messages carry a ``message`` object with a
single populated variant field and a server-relative ``timestamp``.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeGuard

from .errors import BotProtocolError

SUBSCRIPTION_CATEGORIES: tuple[str, ...] = (
    "ConfigIsCurrent",
    "Command",
    "FlyerSensors",
    "WinchStatus",
    "GimbalControlStatus",
    "GimbalValue",
    "UnhandledGimbalPacket",
)


class MessageKind(str, Enum):
    """Payload variants the client understands."""

    WINCH_STATUS = "WinchStatus"
    FLYER_SENSORS = "FlyerSensors"
    CONFIG_IS_CURRENT = "ConfigIsCurrent"
    GIMBAL_VALUE = "GimbalValue"
    GIMBAL_CONTROL_STATUS = "GimbalControlStatus"
    COMMAND = "Command"
    UNHANDLED_GIMBAL_PACKET = "UnhandledGimbalPacket"


class CommandKind(str, Enum):
    """Camera command sub-variants tracked by the model."""

    CAMERA_OBJECT_DETECTION = "CameraObjectDetection"
    CAMERA_REGION_TRACKING = "CameraRegionTracking"
    CAMERA_OUTPUT_STATUS = "CameraOutputStatus"


_KINDS = {kind.value: kind for kind in MessageKind}
_COMMAND_KINDS = {kind.value: kind for kind in CommandKind}


def _is_protocol_iterable(value: Any) -> TypeGuard[Iterable[Any]]:
    """Return True when value is a non-string iterable."""
    return not isinstance(value, (str, bytes, dict)) and isinstance(value, Iterable)


def _require_int(value: Any, what: str) -> int:
    # bool is a subclass of int but never a valid index or timestamp
    if isinstance(value, bool) or not isinstance(value, int):
        raise BotProtocolError(f"{what} must be integer, got {type(value).__name__}")
    return value


@dataclass(frozen=True, slots=True)
class GimbalAddress:
    """Two-level gimbal value address."""

    index: int
    target: int


@dataclass(slots=True)
class Message:
    """One timestamped message from a stream burst.

    ``local_timestamp`` is filled in by the dispatcher before the message is
    handed to subscribers.
    """

    variant: str
    payload: Any
    timestamp: int
    local_timestamp: int | None = None

    @property
    def kind(self) -> MessageKind | None:
        """Known variant, or None for variants this client does not model."""
        return _KINDS.get(self.variant)

    @property
    def winch_id(self) -> int:
        if self.kind is not MessageKind.WINCH_STATUS:
            raise BotProtocolError(f"{self.variant} has no winch id")
        return _require_int(self.payload[0], "WinchStatus id")

    @property
    def gimbal_address(self) -> GimbalAddress:
        if self.kind is not MessageKind.GIMBAL_VALUE:
            raise BotProtocolError(f"{self.variant} has no gimbal address")
        addr = self.payload[0]["addr"]
        return GimbalAddress(
            index=_require_int(addr["index"], "GimbalValue addr.index"),
            target=_require_int(addr["target"], "GimbalValue addr.target"),
        )

    @property
    def command_kind(self) -> CommandKind | None:
        if self.kind is not MessageKind.COMMAND or not isinstance(self.payload, dict):
            return None
        for name in self.payload:
            return _COMMAND_KINDS.get(name)
        return None

    def to_json(self) -> dict[str, Any]:
        """Return the wire shape annotated with the local timestamp."""
        return {
            "message": {self.variant: self.payload},
            "timestamp": self.timestamp,
            "local_timestamp": self.local_timestamp,
        }

    @classmethod
    def from_json(cls, obj: Any) -> Message:
        """Decode one stream message.

        Raises:
            BotProtocolError: If the message is not a single-variant envelope
                with an integer timestamp, or an addressed variant lacks its
                address.
        """
        if not isinstance(obj, dict):
            raise BotProtocolError("Stream message must be an object")
        body = obj.get("message")
        if not isinstance(body, dict) or len(body) != 1:
            raise BotProtocolError("Stream message must hold exactly one variant")
        ((variant, payload),) = body.items()
        message = cls(
            variant=variant,
            payload=payload,
            timestamp=_require_int(obj.get("timestamp"), "timestamp"),
        )
        # Validate addressed variants up front so folding never fails halfway
        try:
            if message.kind is MessageKind.WINCH_STATUS:
                _ = message.winch_id
            elif message.kind is MessageKind.GIMBAL_VALUE:
                _ = message.gimbal_address
        except (KeyError, IndexError, TypeError) as err:
            raise BotProtocolError(f"Malformed {variant} payload") from err
        return message


@dataclass(frozen=True, slots=True)
class StreamEnvelope:
    """A burst of messages, in server order."""

    messages: list[Message]
    raw: dict[str, Any] = field(repr=False, compare=False)


@dataclass(frozen=True, slots=True)
class ErrorEnvelope:
    """Server-reported error."""

    error: Any
    raw: dict[str, Any] = field(repr=False, compare=False)


@dataclass(frozen=True, slots=True)
class AuthChallengeEnvelope:
    """Authentication challenge issued by the server."""

    challenge: bytes
    raw: dict[str, Any] = field(repr=False, compare=False)


@dataclass(frozen=True, slots=True)
class AuthStatusEnvelope:
    """Result of the last authentication attempt."""

    status: bool
    raw: dict[str, Any] = field(repr=False, compare=False)


Envelope = StreamEnvelope | ErrorEnvelope | AuthChallengeEnvelope | AuthStatusEnvelope


def _challenge_bytes(value: Any) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    if _is_protocol_iterable(value):
        values = list(value)
        for idx, item in enumerate(values):
            if isinstance(item, bool) or not isinstance(item, int) or not 0 <= item <= 255:
                raise BotProtocolError(f"Challenge byte at index {idx} is invalid")
        return bytes(values)
    raise BotProtocolError(
        f"Challenge must be string or byte array, got {type(value).__name__}"
    )


def decode_envelope(obj: Any) -> Envelope | None:
    """Decode a parsed inbound frame.

    Returns:
        The typed envelope, or None when the frame has no recognized shape.

    Raises:
        BotProtocolError: If the frame has a recognized shape but invalid
            content.
    """
    if not isinstance(obj, dict):
        return None

    if "Stream" in obj:
        raw_messages = obj["Stream"]
        if not isinstance(raw_messages, list) or not raw_messages:
            raise BotProtocolError("Stream must be a non-empty list")
        return StreamEnvelope(
            messages=[Message.from_json(item) for item in raw_messages], raw=obj
        )

    if "Error" in obj:
        return ErrorEnvelope(error=obj["Error"], raw=obj)

    if "Auth" in obj:
        auth = obj["Auth"]
        if not isinstance(auth, dict) or "challenge" not in auth:
            raise BotProtocolError("Auth frame must carry a challenge")
        return AuthChallengeEnvelope(challenge=_challenge_bytes(auth["challenge"]), raw=obj)

    if "AuthStatus" in obj:
        return AuthStatusEnvelope(status=obj["AuthStatus"] is True, raw=obj)

    return None


def compute_digest(challenge: bytes, key: str) -> str:
    """Return base64(HMAC-SHA512(challenge)) keyed by the shared secret."""
    mac = hmac.new(key.encode("utf-8"), challenge, hashlib.sha512)
    return base64.b64encode(mac.digest()).decode("ascii")


def build_subscription(categories: Sequence[str]) -> dict[str, Any]:
    """Construct the subscription request sent on every connect."""
    if isinstance(categories, str):
        raise ValueError("categories must be a sequence of names, not a string")
    return {"Subscription": list(categories)}


def build_auth(digest: str) -> dict[str, Any]:
    """Construct the challenge response frame."""
    if not digest:
        raise ValueError("digest is required for Auth frames")
    return {"Auth": {"digest": digest}}


def encode_frame(payload: dict[str, Any]) -> str:
    """Serialize an outbound frame."""
    return json.dumps(payload)
