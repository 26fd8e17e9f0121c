"""
AsyncStrangerChat: wires the signaling channel, view and state machine.
"""

import functools
from typing import Optional

from strangerchat.config import ClientConfig
from strangerchat.errors import TransportLoss
from strangerchat.machine import ChatSessionStateMachine
from strangerchat.media import acquire_local_media, remote_sink_factory
from strangerchat.models.session import SessionState
from strangerchat.presence import PresenceView, Renderer
from strangerchat.transport.socketio import SignalingChannel


class AsyncStrangerChat:
    """Async client for one relay connection."""

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        renderer: Optional[Renderer] = None,
        capture_media: bool = True,
        channel: Optional[SignalingChannel] = None,
    ):
        self.config = config or ClientConfig()
        self.view = PresenceView(renderer)
        self.channel = channel or SignalingChannel(
            self.config.server_url,
            socketio_path=self.config.socketio_path,
            transports=self.config.transports,
            connect_timeout=self.config.connect_timeout,
            reconnection=self.config.reconnection,
        )
        self.machine = ChatSessionStateMachine(
            self.channel,
            self.view,
            ice_servers=self.config.ice_servers,
            media_factory=functools.partial(acquire_local_media, self.config) if capture_media else None,
            sink_factory=remote_sink_factory(self.config),
            negotiation_timeout=self.config.negotiation_timeout,
        )
        self.machine.bind()

    @property
    def connected(self) -> bool:
        return self.channel.connected

    @property
    def state(self) -> SessionState:
        return self.machine.state

    @property
    def online_count(self) -> Optional[int]:
        return self.view.online_count

    async def connect(self) -> None:
        await self.channel.connect()
        self.view.render_state(self.machine.state)

    async def disconnect(self) -> None:
        await self.machine.aclose()
        await self.channel.disconnect()

    def start(self) -> None:
        self._ensure_connected()
        self.machine.start()

    def stop(self) -> None:
        self.machine.stop()

    def confirm_stop(self) -> None:
        self.machine.confirm_stop()

    def send(self, text: str) -> bool:
        return self.machine.submit_message(text)

    def input_changed(self, text: str) -> None:
        self.machine.input_changed(text)

    def input_clicked(self, text: str) -> None:
        self.machine.input_clicked(text)

    def input_blurred(self) -> None:
        self.machine.input_blurred()

    def _ensure_connected(self) -> None:
        if not self.channel.connected:
            raise TransportLoss("Not connected. Call connect() first.")
