"""
Relay Answerer

Answers client offers with a server-side aiortc peer connection per session.
Tracks received on a publisher session are forwarded through a MediaRelay to
every subscriber session that shares its session id.

Flow for one offer:
1. Create RTCPeerConnection with the configured ICE servers
2. Set remote description (the client's offer)
3. Subscriber: add relayed copies of the publisher's tracks
4. Create and set local description (answer)
5. Consume the client's trickled candidates pushed by the coordinator
"""

from typing import Callable, Dict, List, Optional, Tuple

from aiortc import (
    MediaStreamTrack,
    RTCConfiguration,
    RTCIceServer,
    RTCPeerConnection,
    RTCSessionDescription,
)
from aiortc.contrib.media import MediaRelay

from tools.ice import build_ice_candidate
from tools.logger import log_info, log_debug, log_error, log_warning
from tools.settings import DEFAULT_ICE_SERVERS
from use_cases.signaling import AnswerProvider, CandidateRecord, Role


class RelayAnswerer(AnswerProvider):
    """One server-side peer connection per (session_id, role)."""

    def __init__(self, ice_servers=DEFAULT_ICE_SERVERS, peer_factory: Optional[Callable] = None):
        self._ice_servers = tuple(ice_servers)
        self._peer_factory = peer_factory or RTCPeerConnection
        self._peers: Dict[Tuple[str, Role], RTCPeerConnection] = {}
        self._tracks: Dict[str, List[MediaStreamTrack]] = {}
        self._relay = MediaRelay()

    def _configuration(self) -> RTCConfiguration:
        return RTCConfiguration(
            iceServers=[RTCIceServer(urls=[url]) for url in self._ice_servers]
        )

    def get_peer_connection(self, session_id: str, role) -> Optional[RTCPeerConnection]:
        return self._peers.get((session_id, Role(role)))

    def published_tracks(self, session_id: str) -> List[MediaStreamTrack]:
        return list(self._tracks.get(session_id, ()))

    async def create_answer(self, session_id: str, role: Role, offer_sdp: str) -> str:
        role = Role(role)
        key = (session_id, role)
        if key in self._peers:
            log_warning(f"Peer connection for session {session_id} ({role.value}) exists, closing it")
            await self.release(session_id, role)

        pc = self._peer_factory(configuration=self._configuration())
        self._peers[key] = pc

        @pc.on("connectionstatechange")
        async def on_connection_state_change():
            log_info(f"Relay peer {session_id} ({role.value}) connection state: {pc.connectionState}")

        if role is Role.PUBLISHER:
            @pc.on("track")
            def on_track(track):
                log_info(f"Received {track.kind} track for session {session_id}")
                self._tracks.setdefault(session_id, []).append(track)

        try:
            await pc.setRemoteDescription(RTCSessionDescription(sdp=offer_sdp, type="offer"))
            log_debug(f"Set remote description for session {session_id} ({role.value})")

            if role is Role.SUBSCRIBER:
                tracks = self.published_tracks(session_id)
                if not tracks:
                    log_warning(f"No published tracks for session {session_id} yet")
                for track in tracks:
                    pc.addTrack(self._relay.subscribe(track))
                    log_debug(f"Relaying {track.kind} track to subscriber of session {session_id}")

            answer = await pc.createAnswer()
            await pc.setLocalDescription(answer)
            log_debug(f"Created answer for session {session_id} ({role.value})")
        except Exception:
            await self.release(session_id, role)
            raise

        if self.coordinator is not None:
            await self.coordinator.attach_consumer(
                session_id, role, self._candidate_sink(pc, session_id), owner_role=role
            )

        return pc.localDescription.sdp

    def _candidate_sink(self, pc: RTCPeerConnection, session_id: str):
        async def add_candidate(record: CandidateRecord):
            candidate = build_ice_candidate(record.to_payload())
            await pc.addIceCandidate(candidate)
            log_debug(f"Added ICE candidate for session {session_id}: {candidate.type} {candidate.ip}:{candidate.port}")

        return add_candidate

    async def release(self, session_id: str, role: Role) -> None:
        role = Role(role)
        pc = self._peers.pop((session_id, role), None)
        if role is Role.PUBLISHER:
            self._tracks.pop(session_id, None)
        if pc is None:
            return
        try:
            await pc.close()
            log_info(f"Closed relay peer for session {session_id} ({role.value})")
        except Exception as e:
            log_error(f"Error closing relay peer for session {session_id}: {e}")

    async def close_all(self) -> None:
        for session_id, role in list(self._peers):
            await self.release(session_id, role)
