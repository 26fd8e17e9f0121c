"""
Chat session state machine.

Owns the session state, the single MediaSession of the current pairing and
the typing indicator. Server events and user actions are handled one at a
time, synchronously; negotiation steps run as tasks tagged with the pairing
generation so that results from a finished pairing never reach the next one.

    IDLE/ENDED --start--> SEARCHING --chatStart--> PAIRED --goodBye etc.--> ENDED
"""

import asyncio
import logging
from typing import Any, Callable, Coroutine, Optional

from strangerchat.config import IceServerConfig
from strangerchat.errors import InvalidTransitionEvent, NegotiationFailure, TransportLoss
from strangerchat.indicator import TypingIndicator
from strangerchat.media import LocalMedia, MediaSession
from strangerchat.models.events import C2SEvent, S2CEvent, TERMINAL_EVENTS, TYPING_HINT
from strangerchat.models.session import ChatMessage, SessionState
from strangerchat.models.signal import SessionDescription, SignalEnvelope, SignalPayload
from strangerchat.presence import PresenceView
from strangerchat.transport.envelope import build_envelope, parse_envelope
from strangerchat.transport.socketio import SignalingChannel

logger = logging.getLogger(__name__)

TRANSPORT_LOST_NOTICE = "Lost connection to the server."
NEGOTIATION_FAILED_NOTICE = "Could not connect to the stranger. Chat ended."
CLOSED_NOTICE = "You have disconnected."

ACTIVE_STATES = (SessionState.SEARCHING, SessionState.PAIRED)


class ChatSessionStateMachine:
    def __init__(
        self,
        channel: SignalingChannel,
        view: PresenceView,
        ice_servers: list[IceServerConfig],
        media_factory: Optional[Callable[[], LocalMedia]] = None,
        peer_connection_factory: Optional[Callable[..., Any]] = None,
        sink_factory: Optional[Callable[[], Any]] = None,
        negotiation_timeout: Optional[float] = None,
    ):
        self._channel = channel
        self._view = view
        self._ice_servers = ice_servers
        self._media_factory = media_factory
        self._pc_factory = peer_connection_factory
        self._sink_factory = sink_factory
        self._negotiation_timeout = negotiation_timeout

        self._state = SessionState.IDLE
        self._media: Optional[MediaSession] = None
        self._generation = 0
        self._partner_id: Optional[str] = None
        self._confirm_pending = False
        self._typing = TypingIndicator(self._send)
        self._watchdog: Optional[asyncio.Task[None]] = None
        self._tasks: set[asyncio.Task[None]] = set()

        self._handlers: dict[str, Callable[[Any], None]] = {
            S2CEvent.NUMBER_OF_ONLINE: self._on_number_of_online,
            S2CEvent.SEARCHING: self._on_searching,
            S2CEvent.CHAT_START: self._on_chat_start,
            S2CEvent.SIGNAL: self._on_signal,
            S2CEvent.NEW_MESSAGE: self._on_new_message,
            S2CEvent.STRANGER_TYPING: self._on_stranger_typing,
            S2CEvent.STRANGER_DONE_TYPING: self._on_stranger_done_typing,
        }
        for event in TERMINAL_EVENTS:
            self._handlers[event] = self._on_terminal

    # -- inspection -------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def media(self) -> Optional[MediaSession]:
        return self._media

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def partner_id(self) -> Optional[str]:
        return self._partner_id

    @property
    def confirm_pending(self) -> bool:
        return self._confirm_pending

    @property
    def already_typing(self) -> bool:
        return self._typing.already_typing

    def bind(self) -> None:
        """Register one channel handler per server event."""
        for event in self._handlers:
            self._channel.on_event(event, lambda payload, event=event: self.handle(event, payload))
        self._channel.on_disconnect(self.transport_lost)

    # -- server events ----------------------------------------------------

    def handle(self, event: str, payload: Any = None) -> None:
        """Process one server event to completion."""
        handler = self._handlers.get(event)
        if handler is None:
            logger.debug(f"Unknown event {event!r}")
            return
        try:
            handler(payload)
        except InvalidTransitionEvent as e:
            logger.debug(f"Discarded: {e}")

    def _require(self, event: str, *states: SessionState) -> None:
        if self._state not in states:
            raise InvalidTransitionEvent(event, self._state.value)

    def _on_number_of_online(self, payload: Any) -> None:
        try:
            count = int(payload)
        except (TypeError, ValueError):
            logger.debug(f"Ignoring non-numeric online count {payload!r}")
            return
        self._view.render_online(count)

    def _on_searching(self, payload: Any) -> None:
        self._require(S2CEvent.SEARCHING, SessionState.SEARCHING)
        self._view.show_searching(str(payload or ""))

    def _on_chat_start(self, payload: Any) -> None:
        self._require(S2CEvent.CHAT_START, SessionState.SEARCHING)
        initiator = True
        partner = None
        text = payload
        if isinstance(payload, dict):
            text = payload.get("msg", "")
            partner = payload.get("partner")
            initiator = payload.get("initiator", True) is not False
        self._enter_paired(str(text or ""), partner, initiator)

    def _on_signal(self, payload: Any) -> None:
        self._require(S2CEvent.SIGNAL, SessionState.PAIRED)
        envelope = parse_envelope(payload)
        if envelope is None:
            return
        if envelope.sender:
            if self._partner_id is None:
                self._partner_id = envelope.sender
            elif envelope.sender != self._partner_id:
                logger.debug(f"Discarding signal from {envelope.sender}, partner is {self._partner_id}")
                return

        media = self._media
        if media is None:
            return
        signal = envelope.signal
        if isinstance(signal, SessionDescription):
            polite = self._is_polite(envelope)
            self._spawn(self._run_chain(media, media.apply_remote_description(signal, polite)))
        else:
            self._spawn(self._run_chain(media, media.add_remote_ice_candidate(signal)))

    def _is_polite(self, envelope: SignalEnvelope) -> Optional[bool]:
        """The side with the lower id yields on an offer collision.

        The relay may not name the sender; a peer that does not know its
        partner yet addresses signals with its own id, so the target stands in.
        None when neither identifies the other side.
        """
        local = self._channel.sid
        remote = envelope.sender or envelope.target
        if not local or not remote or remote == local:
            return None
        return local < remote

    def _on_new_message(self, payload: Any) -> None:
        self._require(S2CEvent.NEW_MESSAGE, SessionState.PAIRED)
        if not isinstance(payload, dict) or "msg" not in payload:
            logger.debug(f"Ignoring malformed chat message {payload!r}")
            return
        self._view.show_chat(ChatMessage(
            sender_is_self=payload.get("id") == self._channel.sid,
            text=str(payload["msg"]),
        ))

    def _on_stranger_typing(self, payload: Any) -> None:
        self._require(S2CEvent.STRANGER_TYPING, SessionState.PAIRED)
        self._view.show_typing(str(payload or TYPING_HINT))

    def _on_stranger_done_typing(self, payload: Any) -> None:
        self._require(S2CEvent.STRANGER_DONE_TYPING, SessionState.PAIRED)
        self._view.clear_typing()

    def _on_terminal(self, payload: Any) -> None:
        self._require("terminal", *ACTIVE_STATES)
        self._end(str(payload or ""))

    def transport_lost(self, reason: str = "") -> None:
        """The signaling transport dropped. Ends any search or pairing."""
        logger.warning(f"Transport lost in state {self._state.value}: {reason}")
        if self._state in ACTIVE_STATES:
            self._end(TRANSPORT_LOST_NOTICE)

    # -- user actions -----------------------------------------------------

    def start(self) -> None:
        """Ask the relay for a partner. No-op while searching or paired."""
        if self._state in ACTIVE_STATES:
            logger.debug(f"start ignored in state {self._state.value}")
            return
        self._channel.send(C2SEvent.START, self._channel.sid)
        self._typing.reset()
        self._transition(SessionState.SEARCHING)

    def stop(self) -> None:
        """First stop press: ask for confirmation."""
        if self._state is not SessionState.PAIRED or self._confirm_pending:
            return
        self._confirm_pending = True
        self._view.render_state(self._state, self._confirm_pending)

    def confirm_stop(self) -> None:
        """Second stop press: the relay decides how the pairing ends."""
        if self._state is not SessionState.PAIRED or not self._confirm_pending:
            return
        self._send(C2SEvent.STOP)

    def input_changed(self, value: str) -> None:
        if self._state is SessionState.PAIRED:
            self._typing.changed(value)

    def input_clicked(self, value: str) -> None:
        if self._state is SessionState.PAIRED:
            self._typing.clicked(value)

    def input_blurred(self) -> None:
        if self._state is SessionState.PAIRED:
            self._typing.blurred()

    def submit_message(self, text: str) -> bool:
        """Send a chat line. Blank lines and lines outside a pairing are ignored."""
        if self._state is not SessionState.PAIRED or not text.strip():
            return False
        self._send(C2SEvent.DONE_TYPING)
        self._send(C2SEvent.NEW_MESSAGE, text)
        self._view.clear_input()
        self._typing.reset()
        return True

    # -- transitions ------------------------------------------------------

    def _transition(self, state: SessionState) -> None:
        logger.info(f"Session {self._state.value} -> {state.value}")
        self._state = state
        self._view.render_state(state, self._confirm_pending)

    def _enter_paired(self, text: str, partner: Optional[str], initiator: bool) -> None:
        if self._media is not None:
            self._spawn(self._media.teardown())
        self._generation += 1
        self._partner_id = partner
        self._confirm_pending = False
        self._typing.reset()
        media = MediaSession(
            generation=self._generation,
            ice_servers=self._ice_servers,
            emit_signal=self._emit_signal,
            media_factory=self._media_factory,
            peer_connection_factory=self._pc_factory,
            sink_factory=self._sink_factory,
            on_failure=self._fail,
            on_remote_media=self._view.media_attached,
        )
        self._media = media
        self._view.show_paired(text)
        self._transition(SessionState.PAIRED)
        self._spawn(self._run_chain(media, self._negotiate(media, initiator)))
        if self._negotiation_timeout:
            self._watchdog = self._spawn(self._run_chain(media, self._watch(media, self._negotiation_timeout)))

    async def _negotiate(self, media: MediaSession, initiator: bool) -> None:
        await media.start()
        if initiator:
            await media.create_offer()

    async def _watch(self, media: MediaSession, timeout: float) -> None:
        try:
            await asyncio.wait_for(media.wait_connected(), timeout=timeout)
        except asyncio.TimeoutError:
            raise NegotiationFailure(f"Peer connection not established after {timeout:g}s")

    def _end(self, notice: str) -> None:
        if self._state not in ACTIVE_STATES:
            return
        self._generation += 1
        media, self._media = self._media, None
        self._partner_id = None
        self._confirm_pending = False
        self._typing.reset()
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None
        self._view.show_ended(notice)
        self._transition(SessionState.ENDED)
        if media is not None:
            self._spawn(media.teardown())

    def _fail(self, generation: int, failure: NegotiationFailure) -> None:
        if generation != self._generation or self._state is not SessionState.PAIRED:
            logger.debug(f"Ignoring failure from stale generation {generation}: {failure}")
            return
        logger.error(f"Negotiation failed: {failure}")
        self._send(C2SEvent.STOP)
        self._end(NEGOTIATION_FAILED_NOTICE)

    # -- outbound ---------------------------------------------------------

    def _emit_signal(self, generation: int, signal: SignalPayload) -> None:
        if generation != self._generation or self._state is not SessionState.PAIRED:
            logger.debug(f"Dropping {signal.kind.value} from stale generation {generation}")
            return
        target = self._partner_id or self._channel.sid
        self._send(C2SEvent.SIGNAL, build_envelope(target, signal))

    def _send(self, event: str, payload: Any = None) -> None:
        try:
            self._channel.send(event, payload)
        except TransportLoss as e:
            self.transport_lost(str(e))

    # -- tasks ------------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_chain(self, media: MediaSession, step: Coroutine[Any, Any, None]) -> None:
        try:
            await step
        except NegotiationFailure as e:
            self._fail(media.generation, e)
        except Exception as e:
            logger.exception(f"Negotiation step crashed for generation {media.generation}")
            self._fail(media.generation, NegotiationFailure(str(e)))

    async def drain(self) -> None:
        """Wait until every negotiation step and teardown has finished."""
        while self._tasks:
            await asyncio.wait(list(self._tasks))

    async def aclose(self) -> None:
        if self._state in ACTIVE_STATES:
            self._end(CLOSED_NOTICE)
        await self.drain()
