"""
WebRTC Offer Handler

Handles SDP offers from publisher and subscriber clients.
Records the offer with the coordinator and acknowledges with the answer SDP.
"""

from tools.logger import log_info
from tools.contract_validation import (
    NonEmptyStringType,
    OptionalType,
    ROLE,
)
from .handler import signaling_handler


NAME = "webrtc:offer"

MESSAGE_CONTRACT = {
    "session_id": OptionalType(NonEmptyStringType),  # generated when absent
    "role": ROLE,
    "sdp": NonEmptyStringType,
}


def init(server, coordinator):
    """
    Initialize the WebRTC offer handler.

    Args:
        server: Socket.IO server
        coordinator: SignalingCoordinator instance
    """
    log_info(f"Registering topic: {NAME}")

    @server.on(NAME)
    @signaling_handler(MESSAGE_CONTRACT, NAME)
    async def handle_offer(sid, message):
        """
        Handle incoming WebRTC offer.

        Flow:
        1. Validate message
        2. Submit the offer (creates the session when needed)
        3. Acknowledge with the answer SDP
        """
        role = message["role"]
        log_info(f"Received WebRTC offer from {sid} for session {message.get('session_id')} ({role})")

        session_id, answer = await coordinator.submit_offer(
            message.get("session_id"), role, message["sdp"]
        )

        return {
            "status": "success",
            "session_id": session_id,
            "sdp": answer,
            "sdp_type": "answer",
        }
