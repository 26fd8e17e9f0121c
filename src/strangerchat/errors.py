"""
strangerchat error types.

Terminal errors end the pairing; the others are recovered where they occur.
"""

from typing import Any, Optional


class StrangerChatError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class MediaAcquisitionError(StrangerChatError):
    """Camera or microphone unavailable. The chat continues text-only."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("media_unavailable", message, details)


class InvalidTransitionEvent(StrangerChatError):
    """An event arrived in a state that does not expect it. Never surfaced."""

    def __init__(self, event: str, state: str):
        super().__init__("invalid_transition", f"{event!r} ignored in state {state!r}",
                         {"event": event, "state": state})
        self.event = event
        self.state = state


class NegotiationFailure(StrangerChatError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("negotiation_failed", message, details)


class TransportLoss(StrangerChatError):
    def __init__(self, message: str):
        super().__init__("transport_lost", message)


class ConfigError(StrangerChatError):
    def __init__(self, message: str, code: str = "config_error"):
        super().__init__(code, message)
