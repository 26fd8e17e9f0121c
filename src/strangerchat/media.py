"""
Media session: local capture plus the one RTCPeerConnection of a pairing.

A MediaSession belongs to exactly one pairing, identified by its generation.
Operations are serialized per session; results produced after teardown, or
by a peer connection that has since been replaced, are dropped.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from aiortc import RTCConfiguration, RTCIceServer, RTCPeerConnection, RTCSessionDescription
from aiortc.contrib.media import MediaBlackhole, MediaPlayer, MediaRecorder
from aiortc.sdp import candidate_from_sdp, candidate_to_sdp

from strangerchat.config import ClientConfig, IceServerConfig
from strangerchat.errors import MediaAcquisitionError, NegotiationFailure
from strangerchat.models.signal import IceCandidate, SessionDescription, SignalPayload

logger = logging.getLogger(__name__)

SignalEmitter = Callable[[int, SignalPayload], None]
FailureHandler = Callable[[int, NegotiationFailure], None]
RemoteMediaHandler = Callable[[str], None]


class LocalMedia:
    """Opened capture players and the tracks they expose."""

    def __init__(self, players: list[Any]):
        self._players = players
        self.tracks = [
            track for player in players
            for track in (player.audio, player.video) if track is not None
        ]

    def stop(self) -> None:
        for track in self.tracks:
            track.stop()
        self.tracks = []


def acquire_local_media(config: ClientConfig) -> LocalMedia:
    """Open the configured camera and microphone.

    Raises MediaAcquisitionError when nothing is configured or a device
    cannot be opened.
    """
    players: list[MediaPlayer] = []
    try:
        if config.video_device:
            players.append(MediaPlayer(
                config.video_device,
                format=config.video_format,
                options=config.video_options or None,
            ))
        if config.audio_device:
            players.append(MediaPlayer(config.audio_device, format=config.audio_format))
    except Exception as e:
        LocalMedia(players).stop()
        raise MediaAcquisitionError(f"Could not open capture device: {e}")

    if not players:
        raise MediaAcquisitionError("No capture device configured")
    media = LocalMedia(players)
    if not media.tracks:
        raise MediaAcquisitionError("Capture devices exposed no audio or video track")
    return media


def remote_sink_factory(config: ClientConfig) -> Callable[[], Any]:
    """Remote tracks go to a MediaRecorder when record_path is set."""
    if config.record_path:
        path = config.record_path
        return lambda: MediaRecorder(path)
    return MediaBlackhole


def to_rtc_configuration(ice_servers: list[IceServerConfig]) -> RTCConfiguration:
    return RTCConfiguration(iceServers=[
        RTCIceServer(urls=server.urls, username=server.username, credential=server.credential)
        for server in ice_servers
    ])


class MediaSession:
    def __init__(
        self,
        generation: int,
        ice_servers: list[IceServerConfig],
        emit_signal: SignalEmitter,
        media_factory: Optional[Callable[[], LocalMedia]] = None,
        peer_connection_factory: Optional[Callable[..., Any]] = None,
        sink_factory: Optional[Callable[[], Any]] = None,
        on_failure: Optional[FailureHandler] = None,
        on_remote_media: Optional[RemoteMediaHandler] = None,
    ):
        self.generation = generation
        self._configuration = to_rtc_configuration(ice_servers)
        self._emit_signal = emit_signal
        self._media_factory = media_factory
        self._pc_factory = peer_connection_factory or RTCPeerConnection
        self._sink_factory = sink_factory or MediaBlackhole
        self._on_failure = on_failure
        self._on_remote_media = on_remote_media

        self._lock = asyncio.Lock()
        self._pc: Optional[Any] = None
        self._local_media: Optional[LocalMedia] = None
        self._sink: Optional[Any] = None
        self._sink_started = False
        self._pending_candidates: list[IceCandidate] = []
        self._remote_description_set = False
        self._rolled_back = False
        self._connected = asyncio.Event()
        self._closed = False

    def __repr__(self) -> str:
        return f"MediaSession(generation={self.generation}, closed={self._closed})"

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def text_only(self) -> bool:
        return self._local_media is None

    @property
    def peer_connection(self) -> Optional[Any]:
        return self._pc

    @property
    def local_media(self) -> Optional[LocalMedia]:
        return self._local_media

    @property
    def pending_candidates(self) -> int:
        return len(self._pending_candidates)

    async def start(self) -> None:
        """Acquire local media and open the peer connection.

        A capture failure is not fatal: the connection is opened receive-only
        so the partner's media still arrives and text chat is unaffected.
        """
        async with self._lock:
            if self._closed:
                return
            if self._media_factory is not None:
                # Device opens block; keep them off the loop
                try:
                    local_media = await asyncio.to_thread(self._media_factory)
                except MediaAcquisitionError as e:
                    logger.warning(f"Continuing text-only: {e}")
                else:
                    if self._closed:
                        local_media.stop()
                        return
                    self._local_media = local_media
            self._open_peer_connection()

    def _open_peer_connection(self) -> None:
        pc = self._pc_factory(configuration=self._configuration)
        if self._local_media is not None:
            for track in self._local_media.tracks:
                pc.addTrack(track)
        else:
            pc.addTransceiver("audio", direction="recvonly")
            pc.addTransceiver("video", direction="recvonly")

        @pc.on("icecandidate")
        def on_ice_candidate(candidate: Any) -> None:
            self._on_local_candidate(pc, candidate)

        @pc.on("track")
        def on_track(track: Any) -> None:
            self._on_track(pc, track)

        @pc.on("connectionstatechange")
        def on_connection_state() -> None:
            self._on_connection_state(pc)

        self._pc = pc
        self._remote_description_set = False

    def _current(self, pc: Any) -> bool:
        return not self._closed and pc is self._pc

    async def create_offer(self) -> None:
        """Create the local offer, apply it and emit it."""
        async with self._lock:
            pc = self._pc
            if pc is None or self._closed:
                logger.debug(f"{self!r}: offer skipped, session closed")
                return
            try:
                offer = await pc.createOffer()
                await pc.setLocalDescription(offer)
            except Exception as e:
                if not self._current(pc):
                    return
                raise NegotiationFailure(f"Could not create offer: {e}") from e
            if self._current(pc):
                self._emit_local_description(pc)

    async def apply_remote_description(
        self, description: SessionDescription, polite: Optional[bool] = True
    ) -> None:
        """Apply a remote offer or answer. An offer is answered.

        `polite` decides who yields when both sides offered. When it is None
        the remote peer is unknown and the lower offer SDP yields, so the two
        sides still reach opposite decisions.
        """
        async with self._lock:
            pc = self._pc
            if pc is None or self._closed:
                logger.debug(f"{self!r}: remote {description.type} dropped, session closed")
                return

            if description.type == "offer" and pc.signalingState == "have-local-offer":
                if polite is None:
                    polite = pc.localDescription.sdp < description.sdp
                if not polite:
                    logger.info("Offer collision: keeping the local offer")
                    return
                logger.info("Offer collision: rebuilding the peer connection to answer")
                await pc.close()
                self._open_peer_connection()
                self._rolled_back = True
                pc = self._pc

            if description.type == "answer" and pc.signalingState == "stable" and self._rolled_back:
                logger.debug("Dropping answer to an offer abandoned in a collision")
                return

            try:
                await pc.setRemoteDescription(
                    RTCSessionDescription(sdp=description.sdp, type=description.type)
                )
            except Exception as e:
                if not self._current(pc):
                    return
                raise NegotiationFailure(f"Could not apply remote {description.type}: {e}") from e
            if not self._current(pc):
                return
            self._remote_description_set = True
            await self._start_sink()

            pending, self._pending_candidates = self._pending_candidates, []
            for candidate in pending:
                await self._apply_candidate(pc, candidate)

            if description.type != "offer":
                return
            try:
                answer = await pc.createAnswer()
                await pc.setLocalDescription(answer)
            except Exception as e:
                if not self._current(pc):
                    return
                raise NegotiationFailure(f"Could not create answer: {e}") from e
            if self._current(pc):
                self._emit_local_description(pc)

    async def add_remote_ice_candidate(self, candidate: IceCandidate) -> None:
        """Apply a remote candidate, or queue it until a remote description exists."""
        async with self._lock:
            if self._pc is None or self._closed:
                logger.debug(f"{self!r}: remote candidate dropped, session closed")
                return
            if not candidate.candidate:
                return  # end-of-candidates marker
            if not self._remote_description_set:
                self._pending_candidates.append(candidate)
                return
            await self._apply_candidate(self._pc, candidate)

    async def _apply_candidate(self, pc: Any, candidate: IceCandidate) -> None:
        sdp = candidate.candidate
        if sdp.startswith("candidate:"):
            sdp = sdp[len("candidate:"):]
        try:
            parsed = candidate_from_sdp(sdp)
        except (AssertionError, ValueError, IndexError) as e:
            logger.debug(f"Dropping unparsable candidate {candidate.candidate!r}: {e}")
            return
        parsed.sdpMid = candidate.sdpMid
        parsed.sdpMLineIndex = candidate.sdpMLineIndex
        try:
            await pc.addIceCandidate(parsed)
        except ValueError as e:
            logger.debug(f"Dropping candidate the connection refused: {e}")

    def _emit_local_description(self, pc: Any) -> None:
        local = pc.localDescription
        self._emit_signal(self.generation, SessionDescription(type=local.type, sdp=local.sdp))

    def _on_local_candidate(self, pc: Any, candidate: Any) -> None:
        if candidate is None or not self._current(pc):
            return
        self._emit_signal(self.generation, IceCandidate(
            candidate="candidate:" + candidate_to_sdp(candidate),
            sdpMid=candidate.sdpMid,
            sdpMLineIndex=candidate.sdpMLineIndex,
        ))

    def _on_track(self, pc: Any, track: Any) -> None:
        if not self._current(pc):
            return
        logger.info(f"Remote {track.kind} track received")
        if self._sink is None:
            self._sink = self._sink_factory()
        self._sink.addTrack(track)
        if self._on_remote_media is not None:
            self._on_remote_media(track.kind)

    async def _start_sink(self) -> None:
        # Recorders need every track before start(); tracks arrive while the
        # remote description is applied.
        if self._sink is not None and not self._sink_started:
            self._sink_started = True
            await self._sink.start()

    def _on_connection_state(self, pc: Any) -> None:
        if not self._current(pc):
            return
        state = pc.connectionState
        logger.info(f"Peer connection state -> {state}")
        if state == "connected":
            self._connected.set()
        elif state == "failed" and self._on_failure is not None:
            self._on_failure(self.generation, NegotiationFailure("Peer connection failed"))

    async def wait_connected(self) -> None:
        await self._connected.wait()

    async def teardown(self) -> None:
        """Stop local tracks, detach remote media and close the connection.

        Safe to call any number of times.
        """
        if self._closed:
            return
        self._closed = True
        self._pending_candidates.clear()
        if self._local_media is not None:
            self._local_media.stop()
            self._local_media = None
        sink, self._sink = self._sink, None
        pc, self._pc = self._pc, None
        if sink is not None and self._sink_started:
            await sink.stop()
        if pc is not None:
            await pc.close()
        logger.debug(f"{self!r} torn down")
