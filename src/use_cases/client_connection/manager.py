"""
Client Connection Manager

Client-side counterpart of the signaling coordinator. Owns at most one peer
connection per logical stream and drives it through the handshake:

1. Acquire local media (publisher only)
2. Create the peer connection; any failure from here on tears it down
3. Attach local tracks, or recvonly transceivers for a subscriber
4. Route produced ICE candidates to the delivery strategy
5. Create the offer, submit it, apply the answer
6. Poll mode: poll the remote role's candidates until they dry up
   Push mode: subscribe to remote candidates through the transport
7. Forward connection state changes to the coordinator
"""

import asyncio
import inspect
from typing import Callable, List, Optional

from aiortc import RTCConfiguration, RTCIceServer, RTCPeerConnection, RTCSessionDescription

from tools.ice import build_ice_candidate, candidate_to_payload
from tools.logger import log_info, log_debug, log_error, log_warning
from tools.settings import ClientSettings
from use_cases.signaling import Role, SignalingError, SignalingTimeout, TransportError

from .poller import CandidatePoller
from .transports import SignalingTransport


STATUS_IDLE = "idle"
STATUS_CONNECTING = "connecting"
STATUS_CONNECTED = "connected"
STATUS_DISCONNECTED = "disconnected"
STATUS_ERROR = "error"

# Peer connection state -> user visible status
CONNECTION_STATUS = {
    "new": STATUS_CONNECTING,
    "connecting": STATUS_CONNECTING,
    "connected": STATUS_CONNECTED,
    "disconnected": STATUS_DISCONNECTED,
    "closed": STATUS_DISCONNECTED,
    "failed": STATUS_ERROR,
}


class ClientConnectionManager:
    """
    Drives one peer connection for one (session_id, role).

    The _pc slot is the only owner of the underlying connection: initialize()
    is a no-op while the slot is occupied or an initialization is running,
    and teardown() empties the slot before releasing anything, so calling it
    twice never releases twice.
    """

    def __init__(
        self,
        transport: SignalingTransport,
        role,
        session_id: Optional[str] = None,
        settings: Optional[ClientSettings] = None,
        peer_factory: Optional[Callable] = None,
        media_factory: Optional[Callable] = None,
        candidate_builder: Callable = build_ice_candidate,
        receive_kinds=("video",),
        on_status_change: Optional[Callable[[str], None]] = None,
        on_track: Optional[Callable] = None,
    ):
        self.transport = transport
        self.role = Role(role)
        self.session_id = session_id
        self.settings = settings or ClientSettings()
        self._peer_factory = peer_factory or self._default_peer_factory
        self._media_factory = media_factory
        self._candidate_builder = candidate_builder
        self._receive_kinds = tuple(receive_kinds)
        self._on_status_change = on_status_change
        self._on_track = on_track

        if self.role is Role.PUBLISHER and media_factory is None:
            raise ValueError("A publisher needs a media_factory")
        if self.settings.delivery_mode == "push" and not transport.supports_push:
            raise ValueError(f"{type(transport).__name__} cannot deliver candidates by push")

        self._lock = asyncio.Lock()
        self._send_lock = asyncio.Lock()
        self._flushing = False
        self._pc = None
        self._poller: Optional[CandidatePoller] = None
        self._local_tracks: List = []
        self._pending_local: List[dict] = []
        self._pending_remote: List[dict] = []
        self._session_open = False
        self._remote_description_set = False
        self._subscribed = False
        self._status = STATUS_IDLE
        self.last_error: Optional[Exception] = None

    def _default_peer_factory(self):
        configuration = RTCConfiguration(
            iceServers=[RTCIceServer(urls=[url]) for url in self.settings.ice_servers]
        )
        return RTCPeerConnection(configuration=configuration)

    @property
    def status(self) -> str:
        return self._status

    @property
    def active(self) -> bool:
        return self._pc is not None

    @property
    def poller(self) -> Optional[CandidatePoller]:
        return self._poller

    def _set_status(self, status: str) -> None:
        if status == self._status:
            return
        log_info(f"Connection {self.session_id} ({self.role.value}) status: {self._status} -> {status}")
        self._status = status
        if self._on_status_change:
            try:
                self._on_status_change(status)
            except Exception as e:
                log_error(f"Error in status change callback: {e}")

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    async def initialize(self) -> bool:
        """
        Create the peer connection and run the handshake.

        Returns:
            True if a connection was created, False if one was already active
        """
        if self._pc is not None or self._lock.locked():
            log_warning("Connection already initialized, not creating another one")
            return False

        async with self._lock:
            self._pending_local = []
            self._pending_remote = []
            self._remote_description_set = False
            self.last_error = None
            self._set_status(STATUS_CONNECTING)

            try:
                await self._initialize_unlocked()
            except Exception as e:
                log_error(f"Connection initialization failed: {e}")
                self.last_error = e
                await self.teardown()
                self._set_status(STATUS_ERROR)
                raise
        return True

    async def _initialize_unlocked(self):
        if self.role is Role.PUBLISHER:
            tracks = self._media_factory()
            if inspect.isawaitable(tracks):
                tracks = await tracks
            self._local_tracks = list(tracks)
            log_debug(f"Acquired {len(self._local_tracks)} local tracks")

        pc = self._peer_factory()
        self._pc = pc
        self._register_handlers(pc)

        if self.role is Role.PUBLISHER:
            for track in self._local_tracks:
                pc.addTrack(track)
        else:
            for kind in self._receive_kinds:
                pc.addTransceiver(kind, direction="recvonly")

        offer = await pc.createOffer()
        await pc.setLocalDescription(offer)
        log_debug(f"Created local offer ({self.role.value})")

        session_id, answer_sdp = await self.transport.send_offer(
            self.session_id, self.role, pc.localDescription.sdp
        )
        self.session_id = session_id
        self._session_open = True
        self._ensure_current(pc)

        await pc.setRemoteDescription(RTCSessionDescription(sdp=answer_sdp, type="answer"))
        self._remote_description_set = True
        log_info(f"Answer applied for session {self.session_id} ({self.role.value})")

        await self._flush_local_candidates()
        await self._apply_pending_remote()
        self._ensure_current(pc)

        if self.settings.delivery_mode == "poll":
            self._start_poller()
        else:
            await self.transport.subscribe_candidates(
                self.session_id, self.role, self.add_remote_candidate
            )
            self._subscribed = True

    def _ensure_current(self, pc) -> None:
        if self._pc is not pc:
            raise SignalingError(
                "Connection was torn down during initialization", session_id=self.session_id
            )

    def _register_handlers(self, pc) -> None:

        @pc.on("icecandidate")
        async def on_ice_candidate(candidate):
            if candidate:
                payload = candidate_to_payload(candidate)
            else:
                log_debug("ICE candidate gathering completed")
                payload = {"candidate": None, "sdpMid": None, "sdpMLineIndex": None}
            try:
                await self._deliver_local_candidate(payload)
            except SignalingError as e:
                log_error(f"Candidate for session {self.session_id} rejected: {e}")
                self.last_error = e

        @pc.on("connectionstatechange")
        async def on_connection_state_change():
            if pc is not self._pc:
                return
            await self._handle_connection_state(pc.connectionState)

        @pc.on("track")
        def on_track(track):
            log_info(f"Received remote {track.kind} track for session {self.session_id}")
            if self._on_track:
                self._on_track(track)

    async def _handle_connection_state(self, state: str) -> None:
        log_info(f"Session {self.session_id} ({self.role.value}) connection state: {state}")
        self._set_status(CONNECTION_STATUS.get(state, self._status))

        if state in ("failed", "closed"):
            await self._stop_poller()

        if self.session_id is None or not self._session_open:
            return
        try:
            await self.transport.report_state(self.session_id, self.role, state)
        except SignalingError as e:
            log_warning(f"Could not report state {state} for session {self.session_id}: {e}")
            self.last_error = e
        if state == "closed":
            self._session_open = False

    # ------------------------------------------------------------------
    # Candidates
    # ------------------------------------------------------------------

    async def _deliver_local_candidate(self, payload: dict) -> None:
        """
        Push mode submits at once when the session exists; otherwise the
        candidate is buffered until the answer has been applied.

        Candidates leave in the order they were produced: while anything is
        buffered or being flushed, new ones queue behind it.
        """
        ready = self._session_open and (
            self.settings.delivery_mode == "push" or self._remote_description_set
        )
        if not ready or self._flushing or self._pending_local:
            self._pending_local.append(payload)
            return
        async with self._send_lock:
            await self._send_candidate(payload)

    async def _flush_local_candidates(self) -> None:
        if self._flushing:
            return
        if self._pending_local:
            log_debug(f"Flushing {len(self._pending_local)} buffered local candidates")
        self._flushing = True
        try:
            while self._pending_local:
                payload = self._pending_local.pop(0)
                async with self._send_lock:
                    await self._send_candidate(payload)
        finally:
            self._flushing = False

    async def _send_candidate(self, payload: dict) -> bool:
        """
        Submit one candidate, retrying transport failures with backoff.

        A candidate that still fails is dropped: it only narrows the set of
        connectivity checks.
        """
        retries = self.settings.candidate_retries
        for attempt in range(retries + 1):
            try:
                await self.transport.send_candidate(self.session_id, self.role, payload)
                return True
            except (TransportError, SignalingTimeout) as e:
                if attempt == retries:
                    log_error(f"Dropping candidate for session {self.session_id} after {attempt + 1} attempts: {e}")
                    return False
                delay = self.settings.retry_backoff * (2 ** attempt)
                log_warning(f"Candidate submission failed ({e}), retrying in {delay}s")
                await asyncio.sleep(delay)
        return False

    async def add_remote_candidate(self, payload: dict) -> None:
        """Apply a candidate produced by the remote side."""
        if not payload.get("candidate"):
            log_debug(f"Remote end of candidates for session {self.session_id}")
            return
        pc = self._pc
        if pc is None:
            return
        if not self._remote_description_set:
            self._pending_remote.append(payload)
            return
        await pc.addIceCandidate(self._candidate_builder(payload))
        log_debug(f"Added remote ICE candidate for session {self.session_id}")

    async def _add_remote_candidates(self, payloads: List[dict]) -> None:
        for payload in payloads:
            await self.add_remote_candidate(payload)

    async def _apply_pending_remote(self) -> None:
        pending, self._pending_remote = self._pending_remote, []
        await self._add_remote_candidates(pending)

    def _start_poller(self) -> None:
        session_id, role = self.session_id, self.role

        async def fetch():
            return await self.transport.poll_candidates(session_id, role)

        self._poller = CandidatePoller(
            fetch,
            self._add_remote_candidates,
            interval=self.settings.poll_interval,
            max_empty_polls=self.settings.max_empty_polls,
            name=f"Candidate poller {session_id} ({role.value})",
        )
        self._poller.start()

    async def _stop_poller(self) -> None:
        poller, self._poller = self._poller, None
        if poller is not None:
            await poller.stop()

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def teardown(self) -> None:
        """
        Stop polling, close the peer connection and close the session.

        Safe to call repeatedly and after a partial initialization.
        """
        pc, self._pc = self._pc, None
        tracks, self._local_tracks = self._local_tracks, []
        await self._stop_poller()

        if self._subscribed:
            self._subscribed = False
            try:
                await self.transport.unsubscribe_candidates(self.session_id, self.role)
            except SignalingError as e:
                log_warning(f"Could not unsubscribe session {self.session_id}: {e}")

        if pc is not None:
            try:
                await pc.close()
                log_info(f"Closed peer connection for session {self.session_id} ({self.role.value})")
            except Exception as e:
                log_error(f"Error closing peer connection: {e}")

        for track in tracks:
            try:
                track.stop()
            except Exception as e:
                log_debug(f"Error stopping local track: {e}")

        if self._session_open:
            self._session_open = False
            try:
                await self.transport.close_session(self.session_id, self.role)
            except SignalingError as e:
                log_warning(f"Could not close session {self.session_id}: {e}")

        self._pending_local = []
        self._pending_remote = []
        self._remote_description_set = False
        if pc is not None and self._status != STATUS_ERROR:
            self._set_status(STATUS_DISCONNECTED)

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.teardown()
