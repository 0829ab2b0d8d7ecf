"""Client for bot device-control servers."""

__version__ = "0.1.0"

from .bootstrap import Descriptor, DescriptorKeyProvider, read_descriptor, resolve_endpoint
from .client import BotClient
from .clock import ClockSync
from .config import BotClientConfig
from .dispatcher import Dispatcher
from .errors import (
    BotBootstrapError,
    BotClientError,
    BotConnectionError,
    BotHandshakeError,
    BotProtocolError,
    BotResponseError,
    BotServerError,
    BotTimeout,
)
from .events import EventBus, Topic
from .model import BotModel, CameraState
from .protocol import (
    SUBSCRIPTION_CATEGORIES,
    CommandKind,
    GimbalAddress,
    Message,
    MessageKind,
    compute_digest,
    decode_envelope,
)
from .scheduler import FrameScheduler, LoopFrameScheduler
from .session import SessionController
from .transport import ReconnectingWebSocket

__all__ = [
    "SUBSCRIPTION_CATEGORIES",
    "BotBootstrapError",
    "BotClient",
    "BotClientConfig",
    "BotClientError",
    "BotConnectionError",
    "BotHandshakeError",
    "BotModel",
    "BotProtocolError",
    "BotResponseError",
    "BotServerError",
    "BotTimeout",
    "CameraState",
    "ClockSync",
    "CommandKind",
    "Descriptor",
    "DescriptorKeyProvider",
    "Dispatcher",
    "EventBus",
    "FrameScheduler",
    "GimbalAddress",
    "LoopFrameScheduler",
    "Message",
    "MessageKind",
    "ReconnectingWebSocket",
    "SessionController",
    "Topic",
    "__version__",
    "compute_digest",
    "decode_envelope",
    "read_descriptor",
    "resolve_endpoint",
]
