"""
Socket.IO signaling channel to the relay server.

One handler per inbound event name. Outbound sends are scheduled on the
running loop in call order; the transport keeps them FIFO.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

import socketio

from strangerchat.errors import TransportLoss

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], None]
DisconnectHandler = Callable[[str], None]

RESERVED_EVENTS = ("connect", "disconnect", "connect_error")


class SignalingChannel:
    def __init__(
        self,
        server_url: str,
        socketio_path: str = "socket.io",
        transports: Optional[list[str]] = None,
        connect_timeout: float = 15.0,
        reconnection: bool = False,
        client: Optional[socketio.AsyncClient] = None,
    ):
        self._server_url = server_url
        self._socketio_path = socketio_path
        self._transports = transports or ["websocket", "polling"]
        self._connect_timeout = connect_timeout
        self._reconnection = reconnection
        self._sio = client
        self._handlers: dict[str, EventHandler] = {}
        self._disconnect_handler: Optional[DisconnectHandler] = None
        self._closing = False
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def connected(self) -> bool:
        return self._sio is not None and self._sio.connected

    @property
    def sid(self) -> Optional[str]:
        """Local peer identity, assigned by the relay on connect."""
        return self._sio.sid if self._sio is not None else None

    def on_event(self, event: str, handler: EventHandler) -> None:
        """Register the handler for `event`, replacing any previous one."""
        if event in self._handlers:
            logger.warning(f"Replacing handler for {event!r}")
        self._handlers[event] = handler

    def on_disconnect(self, handler: Optional[DisconnectHandler]) -> None:
        self._disconnect_handler = handler

    async def connect(self) -> None:
        if self.connected:
            return

        if self._sio is None:
            self._sio = socketio.AsyncClient(reconnection=self._reconnection)
        self._closing = False

        @self._sio.on("*")
        async def on_any(event: str, *args: Any) -> None:
            if event in RESERVED_EVENTS:
                return
            self._dispatch(event, args[0] if args else None)

        @self._sio.event
        async def disconnect(reason: str = "") -> None:
            if self._closing:
                return
            logger.warning(f"Signaling transport dropped: {reason or 'unknown reason'}")
            if self._disconnect_handler is not None:
                self._disconnect_handler(str(reason) or "transport closed")

        try:
            await self._sio.connect(
                self._server_url,
                transports=self._transports,
                socketio_path=self._socketio_path,
                wait_timeout=self._connect_timeout,
            )
        except socketio.exceptions.ConnectionError as e:
            raise TransportLoss(f"Could not connect to {self._server_url}: {e}")
        logger.info(f"Connected to {self._server_url} as {self.sid}")

    def _dispatch(self, event: str, payload: Any) -> None:
        handler = self._handlers.get(event)
        if handler is None:
            logger.debug(f"No handler for {event!r}")
            return
        handler(payload)

    def send(self, event: str, payload: Any = None) -> None:
        """Schedule an emit on the running loop. Emit errors are logged."""
        if not self.connected:
            raise TransportLoss(f"Cannot send {event!r}: not connected")
        sio = self._sio

        async def _do_emit() -> None:
            try:
                await sio.emit(event, payload)  # type: ignore[union-attr]
            except Exception as e:
                logger.error(f"Emit failed for {event}: {e}")

        task = asyncio.get_running_loop().create_task(_do_emit())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def flush(self) -> None:
        """Wait for every scheduled emit to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def disconnect(self) -> None:
        self._closing = True
        if self._sio is not None:
            await self.flush()
            await self._sio.disconnect()
            self._sio = None
