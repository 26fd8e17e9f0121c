"""Fakes for the relay transport, the peer connection, capture and the renderer."""

from typing import Any, Callable, Optional

import pytest
import socketio
from aiortc import RTCSessionDescription

from strangerchat.config import IceServerConfig
from strangerchat.errors import TransportLoss
from strangerchat.machine import ChatSessionStateMachine
from strangerchat.media import LocalMedia
from strangerchat.presence import PresenceView, Renderer

LOCAL_ID = "local-sid"
PARTNER_ID = "peer-b"
HOST_CANDIDATE = "candidate:1 1 udp 2130706431 192.0.2.10 50000 typ host"
ICE_SERVERS = [IceServerConfig(urls="stun:stun.l.google.com:19302")]


class FakeChannel:
    """Stands in for SignalingChannel in state machine tests."""

    def __init__(self, sid: str = LOCAL_ID):
        self.sid = sid
        self.connected = True
        self.sent: list[tuple[str, Any]] = []
        self.handlers: dict[str, Callable[[Any], None]] = {}
        self.disconnect_handler: Optional[Callable[[str], None]] = None

    def on_event(self, event: str, handler: Callable[[Any], None]) -> None:
        self.handlers[event] = handler

    def on_disconnect(self, handler: Callable[[str], None]) -> None:
        self.disconnect_handler = handler

    def send(self, event: str, payload: Any = None) -> None:
        if not self.connected:
            raise TransportLoss(f"Cannot send {event!r}: not connected")
        self.sent.append((event, payload))

    def deliver(self, event: str, payload: Any = None) -> None:
        self.handlers[event](payload)

    def events(self) -> list[str]:
        return [event for event, _ in self.sent]

    def signals(self) -> list[dict[str, Any]]:
        return [payload for event, payload in self.sent if event == "signal"]


class FakeSocketIOClient:
    """Stands in for socketio.AsyncClient in channel tests."""

    def __init__(self, sid: str = LOCAL_ID):
        self.sid = sid
        self.connected = False
        self.handlers: dict[str, Callable[..., Any]] = {}
        self.emitted: list[tuple[str, Any]] = []
        self.connect_args: Optional[tuple[str, dict[str, Any]]] = None
        self.refuse = False

    def on(self, event: str, handler: Any = None) -> Callable[[Any], Any]:
        def set_handler(fn: Any) -> Any:
            self.handlers[event] = fn
            return fn
        return set_handler

    def event(self, fn: Any) -> Any:
        self.handlers[fn.__name__] = fn
        return fn

    async def connect(self, url: str, **kwargs: Any) -> None:
        if self.refuse:
            raise socketio.exceptions.ConnectionError("Connection refused by the server")
        self.connect_args = (url, kwargs)
        self.connected = True

    async def emit(self, event: str, data: Any = None) -> None:
        self.emitted.append((event, data))

    async def disconnect(self) -> None:
        self.connected = False
        await self.handlers["disconnect"]("client disconnect")

    async def drop(self, reason: str = "transport close") -> None:
        self.connected = False
        await self.handlers["disconnect"](reason)


class FakeTrack:
    def __init__(self, kind: str):
        self.kind = kind
        self.stop_calls = 0

    def stop(self) -> None:
        self.stop_calls += 1


class FakePlayer:
    def __init__(self, audio: Optional[FakeTrack] = None, video: Optional[FakeTrack] = None):
        self.audio = audio
        self.video = video


def make_local_media() -> LocalMedia:
    return LocalMedia([FakePlayer(audio=FakeTrack("audio"), video=FakeTrack("video"))])


class FakePeerConnection:
    """Just enough of aiortc's RTCPeerConnection to drive negotiation."""

    def __init__(self, configuration: Any = None, remote_tracks: Optional[list[FakeTrack]] = None):
        self.configuration = configuration
        self.remote_tracks = remote_tracks or []
        self.handlers: dict[str, Callable[..., Any]] = {}
        self.tracks: list[Any] = []
        self.transceivers: list[tuple[str, str]] = []
        self.candidates: list[Any] = []
        self.localDescription: Optional[RTCSessionDescription] = None
        self.remoteDescription: Optional[RTCSessionDescription] = None
        self.signalingState = "stable"
        self.connectionState = "new"
        self.close_calls = 0
        self.reject_remote = False

    def on(self, event: str) -> Callable[[Any], Any]:
        def decorator(fn: Any) -> Any:
            self.handlers[event] = fn
            return fn
        return decorator

    def emit(self, event: str, *args: Any) -> None:
        handler = self.handlers.get(event)
        if handler is not None:
            handler(*args)

    def addTrack(self, track: Any) -> None:
        self.tracks.append(track)

    def addTransceiver(self, kind: str, direction: str = "sendrecv") -> None:
        self.transceivers.append((kind, direction))

    async def createOffer(self) -> RTCSessionDescription:
        return RTCSessionDescription(sdp="v=0 offer", type="offer")

    async def createAnswer(self) -> RTCSessionDescription:
        return RTCSessionDescription(sdp="v=0 answer", type="answer")

    async def setLocalDescription(self, description: RTCSessionDescription) -> None:
        self.localDescription = description
        self.signalingState = "have-local-offer" if description.type == "offer" else "stable"

    async def setRemoteDescription(self, description: RTCSessionDescription) -> None:
        if self.reject_remote:
            raise ValueError("Invalid SDP")
        if description.type == "answer" and self.signalingState != "have-local-offer":
            raise RuntimeError(f'Cannot handle answer in signaling state "{self.signalingState}"')
        self.remoteDescription = description
        self.signalingState = "have-remote-offer" if description.type == "offer" else "stable"
        for track in self.remote_tracks:
            self.emit("track", track)

    async def addIceCandidate(self, candidate: Any) -> None:
        self.candidates.append(candidate)

    async def close(self) -> None:
        self.close_calls += 1
        self.signalingState = "closed"
        self.connectionState = "closed"

    def set_connection_state(self, state: str) -> None:
        self.connectionState = state
        self.emit("connectionstatechange")


class PeerConnectionFactory:
    def __init__(self) -> None:
        self.created: list[FakePeerConnection] = []
        self.remote_tracks: list[FakeTrack] = []

    def __call__(self, configuration: Any = None) -> FakePeerConnection:
        pc = FakePeerConnection(configuration, remote_tracks=list(self.remote_tracks))
        self.created.append(pc)
        return pc

    @property
    def last(self) -> FakePeerConnection:
        return self.created[-1]


class FakeSink:
    def __init__(self) -> None:
        self.tracks: list[Any] = []
        self.started = 0
        self.stopped = 0

    def addTrack(self, track: Any) -> None:
        self.tracks.append(track)

    async def start(self) -> None:
        self.started += 1

    async def stop(self) -> None:
        self.stopped += 1


class RecordingRenderer(Renderer):
    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []

    def render_online(self, count):
        self.calls.append(("online", count))

    def render_controls(self, controls):
        self.calls.append(("controls", controls))

    def show_notice(self, text):
        self.calls.append(("notice", text))

    def show_chat(self, message):
        self.calls.append(("chat", message))

    def show_typing(self, text):
        self.calls.append(("typing", text))

    def clear_typing(self):
        self.calls.append(("clear_typing",))

    def clear_conversation(self):
        self.calls.append(("clear_conversation",))

    def clear_input(self):
        self.calls.append(("clear_input",))

    def media_attached(self, kind):
        self.calls.append(("media_attached", kind))

    def media_detached(self):
        self.calls.append(("media_detached",))

    def notices(self) -> list[str]:
        return [call[1] for call in self.calls if call[0] == "notice"]


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def renderer() -> RecordingRenderer:
    return RecordingRenderer()


@pytest.fixture
def pcs() -> PeerConnectionFactory:
    return PeerConnectionFactory()


@pytest.fixture
def make_machine(channel, renderer, pcs):
    def _make(**kwargs: Any) -> ChatSessionStateMachine:
        kwargs.setdefault("media_factory", make_local_media)
        machine = ChatSessionStateMachine(
            channel,
            PresenceView(renderer),
            ice_servers=ICE_SERVERS,
            peer_connection_factory=pcs,
            sink_factory=FakeSink,
            **kwargs,
        )
        machine.bind()
        return machine
    return _make
