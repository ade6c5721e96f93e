"""
WebRTC Disconnect Handler

Handles session close requests from clients.
"""

from tools.logger import log_info
from tools.contract_validation import (
    StringType,
    OptionalType,
    BASE_MESSAGE,
)
from .handler import signaling_handler


NAME = "webrtc:disconnect"

MESSAGE_CONTRACT = {
    **BASE_MESSAGE,
    "reason": OptionalType(StringType),
}


def init(server, coordinator):
    """
    Initialize the WebRTC disconnect handler.

    Args:
        server: Socket.IO server
        coordinator: SignalingCoordinator instance
    """
    log_info(f"Registering topic: {NAME}")

    @server.on(NAME)
    @signaling_handler(MESSAGE_CONTRACT, NAME)
    async def handle_disconnect(sid, message):
        """
        Handle WebRTC session disconnect request.
        """
        session_id = message["session_id"]
        reason = message.get("reason") or "client requested"

        log_info(f"WebRTC disconnect request for session {session_id}: {reason}")

        closed = await coordinator.close(session_id, message["role"], reason=reason)

        if closed:
            return {
                "status": "success",
                "session_id": session_id,
                "message": "Session closed",
            }
        return {
            "status": "warning",
            "session_id": session_id,
            "message": "Session not found (may already be closed)",
        }
