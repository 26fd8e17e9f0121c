"""
Signal envelope: the `signal` event payload relayed between paired peers.

Descriptions travel as {type, sdp}; ICE candidates as the browser's
RTCIceCandidate JSON ({candidate, sdpMid, sdpMLineIndex, usernameFragment}).
"""

from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel


class SignalKind(str, Enum):
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "candidate"


class SessionDescription(BaseModel):
    type: Literal["offer", "answer"]
    sdp: str

    @property
    def kind(self) -> SignalKind:
        return SignalKind(self.type)


class IceCandidate(BaseModel):
    candidate: str
    sdpMid: Optional[str] = None
    sdpMLineIndex: Optional[int] = None
    usernameFragment: Optional[str] = None

    @property
    def kind(self) -> SignalKind:
        return SignalKind.ICE_CANDIDATE


SignalPayload = Union[SessionDescription, IceCandidate]


class SignalEnvelope(BaseModel):
    target: Optional[str] = None
    sender: Optional[str] = None  # filled in by the relay on inbound envelopes
    signal: SignalPayload
