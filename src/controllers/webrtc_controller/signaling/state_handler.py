"""
WebRTC Connection State Handler

Receives peer connection state changes observed by clients and forwards them
to the session state machine.
"""

from tools.logger import log_info
from tools.contract_validation import BASE_MESSAGE, PEER_STATE
from .handler import signaling_handler


NAME = "webrtc:state"

MESSAGE_CONTRACT = {
    **BASE_MESSAGE,
    "state": PEER_STATE,
}


def init(server, coordinator):
    """
    Initialize the WebRTC connection state handler.

    Args:
        server: Socket.IO server
        coordinator: SignalingCoordinator instance
    """
    log_info(f"Registering topic: {NAME}")

    @server.on(NAME)
    @signaling_handler(MESSAGE_CONTRACT, NAME)
    async def handle_state(sid, message):
        session_id = message["session_id"]
        await coordinator.report_state(session_id, message["role"], message["state"])
        return {
            "status": "success",
            "session_id": session_id,
        }
