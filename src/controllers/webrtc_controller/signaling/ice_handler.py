"""
WebRTC ICE Candidate Handler

Receives trickled ICE candidates from clients and admits them into the
coordinator's candidate queue.
"""

from tools.logger import log_info, log_debug
from tools.contract_validation import (
    StringType,
    IntegerType,
    OptionalType,
    BASE_MESSAGE,
)
from .handler import signaling_handler


NAME = "webrtc:ice"

MESSAGE_CONTRACT = {
    **BASE_MESSAGE,
    "candidate": OptionalType(StringType),  # Can be null for end-of-candidates
    "sdp_mid": OptionalType(StringType),
    "sdp_mline_index": OptionalType(IntegerType),
}


def init(server, coordinator):
    """
    Initialize the WebRTC ICE candidate handler.

    Args:
        server: Socket.IO server
        coordinator: SignalingCoordinator instance
    """
    log_info(f"Registering topic: {NAME}")

    @server.on(NAME)
    @signaling_handler(MESSAGE_CONTRACT, NAME)
    async def handle_ice_candidate(sid, message):
        """
        Handle incoming ICE candidate from a client.
        """
        session_id = message["session_id"]

        queued = await coordinator.submit_candidate(
            session_id,
            message["role"],
            message.get("candidate"),
            message.get("sdp_mid"),
            message.get("sdp_mline_index"),
        )

        if not queued:
            log_debug(f"End of ICE candidates from {sid} for session {session_id}")
            return {
                "status": "success",
                "session_id": session_id,
                "message": "End of candidates acknowledged",
            }

        return {
            "status": "success",
            "session_id": session_id,
        }
