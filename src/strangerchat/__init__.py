"""
strangerchat: anonymous random-pairing text and video chat client.

Socket.IO signaling + aiortc WebRTC media.
"""

from strangerchat.client import AsyncStrangerChat
from strangerchat.config import ClientConfig, IceServerConfig, load_config
from strangerchat.errors import (
    StrangerChatError,
    MediaAcquisitionError,
    InvalidTransitionEvent,
    NegotiationFailure,
    TransportLoss,
    ConfigError,
)
from strangerchat.machine import ChatSessionStateMachine
from strangerchat.models.events import C2SEvent, S2CEvent
from strangerchat.models.session import ChatMessage, SessionState

__version__ = "0.1.0"
__all__ = [
    "AsyncStrangerChat",
    "ChatSessionStateMachine",
    "ClientConfig",
    "IceServerConfig",
    "load_config",
    "StrangerChatError",
    "MediaAcquisitionError",
    "InvalidTransitionEvent",
    "NegotiationFailure",
    "TransportLoss",
    "ConfigError",
    "C2SEvent",
    "S2CEvent",
    "ChatMessage",
    "SessionState",
]
