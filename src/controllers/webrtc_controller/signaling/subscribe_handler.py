"""
WebRTC Candidate Subscription Handler

Registers a Socket.IO client as the push consumer for the candidates produced
by the remote side of its session. Pushed candidates are emitted on the
webrtc:ice topic to that client only.
"""

from typing import Dict, List, Tuple

from tools.logger import log_info, log_debug
from tools.contract_validation import BASE_MESSAGE
from use_cases.signaling import CandidateRecord, InvalidMessage, Role
from .handler import signaling_handler
from .ice_handler import NAME as ICE_TOPIC


NAME = "webrtc:subscribe"

MESSAGE_CONTRACT = {
    **BASE_MESSAGE,
}


class PushSubscriptions:
    """Consumers attached per Socket.IO connection, detached on disconnect."""

    def __init__(self, server, coordinator):
        self.server = server
        self.coordinator = coordinator
        self._by_sid: Dict[str, List[Tuple[str, Role, object]]] = {}
        coordinator.on_session_closed(self._on_session_closed)

    def _sink(self, sid: str):
        async def emit_candidate(record: CandidateRecord):
            await self.server.emit(
                ICE_TOPIC,
                {
                    "session_id": record.session_id,
                    "role": record.role.value,
                    "candidate": record.candidate,
                    "sdp_mid": record.sdp_mid,
                    "sdp_mline_index": record.sdp_mline_index,
                },
                to=sid,
            )

        return emit_candidate

    async def subscribe(self, sid: str, session_id: str, role) -> None:
        producer = Role(role).opposite
        sink = self._sink(sid)
        self._by_sid.setdefault(sid, []).append((session_id, producer, sink))
        await self.coordinator.attach_consumer(session_id, producer, sink)

    def _on_session_closed(self, session_id: str, role: Role, reason: str) -> None:
        # The coordinator drops consumers on either side of a removed session
        for sid in list(self._by_sid):
            remaining = [entry for entry in self._by_sid[sid] if entry[0] != session_id]
            if remaining:
                self._by_sid[sid] = remaining
            else:
                del self._by_sid[sid]

    def release(self, sid: str) -> int:
        released = 0
        for session_id, producer, sink in self._by_sid.pop(sid, []):
            if self.coordinator.detach_consumer(session_id, producer, sink):
                released += 1
        return released

    def count(self, sid: str) -> int:
        return len(self._by_sid.get(sid, ()))


def init(server, coordinator, subscriptions: PushSubscriptions):
    """
    Initialize the WebRTC candidate subscription handler.

    Args:
        server: Socket.IO server
        coordinator: SignalingCoordinator instance
        subscriptions: PushSubscriptions registry shared with the connection handlers
    """
    log_info(f"Registering topic: {NAME}")

    @server.on(NAME)
    @signaling_handler(MESSAGE_CONTRACT, NAME)
    async def handle_subscribe(sid, message):
        session_id = message["session_id"]

        # The answer from a local answer provider already carries its candidates
        if coordinator.has_answer_provider:
            return {
                "status": "success",
                "session_id": session_id,
                "message": "Remote candidates are carried in the answer",
            }

        if coordinator.delivery_mode != "push":
            raise InvalidMessage("Push delivery is disabled on this server", session_id=session_id)

        coordinator.get_session(session_id, message["role"])
        await subscriptions.subscribe(sid, session_id, message["role"])
        log_debug(f"{sid} subscribed to candidates for session {session_id}")

        return {
            "status": "success",
            "session_id": session_id,
        }

    @server.on("disconnect")
    async def handle_socket_disconnect(sid, *args):
        released = subscriptions.release(sid)
        if released:
            log_info(f"Released {released} candidate subscription(s) for {sid}")
