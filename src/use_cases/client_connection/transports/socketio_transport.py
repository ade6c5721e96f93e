"""
Socket.IO Signaling Transport

Signaling over a long-lived Socket.IO connection. Requests are emitted with
an acknowledgement (the ack carries the same body as the HTTP responses) and
remote candidates are pushed by the server on the webrtc:ice topic as soon as
they are produced.
"""

import ssl
from typing import Dict, List, Optional, Tuple

import socketio
from socketio import exceptions as socketio_exceptions

from tools.http_session import get_client_session
from tools.logger import log_info, log_debug, log_error, log_warning
from use_cases.signaling import (
    Role,
    SignalingTimeout,
    TransportError,
    error_from_response,
)

from .base import RemoteCandidateCallback, SignalingTransport


OFFER_TOPIC = "webrtc:offer"
ICE_TOPIC = "webrtc:ice"
STATE_TOPIC = "webrtc:state"
SUBSCRIBE_TOPIC = "webrtc:subscribe"
DISCONNECT_TOPIC = "webrtc:disconnect"


class SocketIOSignalingTransport(SignalingTransport):

    supports_push = True

    def __init__(
        self,
        url: str,
        client: Optional[socketio.AsyncClient] = None,
        ssl_context: Optional[ssl.SSLContext] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.url = url
        if client is None:
            client = socketio.AsyncClient(
                reconnection=True,
                reconnection_delay=1,
                reconnection_delay_max=5,
                http_session=get_client_session(ssl_context) if ssl_context else None,
            )
        self.client = client
        self._callbacks: Dict[Tuple[str, Role], RemoteCandidateCallback] = {}
        self.client.on(ICE_TOPIC, self._on_remote_candidate)

    async def connect(self) -> None:
        if not self.client.connected:
            await self.client.connect(self.url)
            log_info(f"Connected to signaling server at {self.url}")

    async def _call(self, topic: str, message: dict):
        try:
            await self.connect()
            response = await self.client.call(topic, message, timeout=self.request_timeout)
        except socketio_exceptions.TimeoutError:
            raise SignalingTimeout(
                f"{topic} timed out after {self.request_timeout}s",
                session_id=message.get("session_id"),
            )
        except socketio_exceptions.SocketIOError as e:
            raise TransportError(f"{topic} failed: {e}", session_id=message.get("session_id"))

        if not isinstance(response, dict):
            raise TransportError(f"Unexpected {topic} response: {response!r}")
        if response.get("status") == "error":
            raise error_from_response(response)
        return response

    async def _on_remote_candidate(self, message):
        """Server push of a candidate produced by the remote role."""
        try:
            producer = Role(message.get("role"))
        except ValueError:
            log_warning(f"Ignoring pushed candidate with unknown role: {message!r}")
            return

        callback = self._callbacks.get((message.get("session_id"), producer.opposite))
        if callback is None:
            log_debug(f"No subscriber for pushed candidate of session {message.get('session_id')}")
            return

        try:
            await callback({
                "candidate": message.get("candidate"),
                "sdpMid": message.get("sdp_mid"),
                "sdpMLineIndex": message.get("sdp_mline_index"),
            })
        except Exception as e:
            log_error(f"Error applying pushed candidate: {e}")

    async def send_offer(self, session_id: Optional[str], role, sdp: str) -> Tuple[str, str]:
        role = Role(role)
        response = await self._call(OFFER_TOPIC, {
            "session_id": session_id,
            "role": role.value,
            "sdp": sdp,
        })
        return response.get("session_id", session_id), response["sdp"]

    async def send_candidate(self, session_id: str, role, payload: dict) -> None:
        await self._call(ICE_TOPIC, {
            "session_id": session_id,
            "role": Role(role).value,
            "candidate": payload.get("candidate"),
            "sdp_mid": payload.get("sdpMid"),
            "sdp_mline_index": payload.get("sdpMLineIndex"),
        })

    async def poll_candidates(self, session_id: str, role) -> List[dict]:
        raise NotImplementedError("Socket.IO signaling delivers candidates by push")

    async def report_state(self, session_id: str, role, state: str) -> None:
        await self._call(STATE_TOPIC, {
            "session_id": session_id,
            "role": Role(role).value,
            "state": state,
        })

    async def close_session(self, session_id: str, role) -> None:
        await self._call(DISCONNECT_TOPIC, {
            "session_id": session_id,
            "role": Role(role).value,
            "reason": "client teardown",
        })

    async def subscribe_candidates(
        self, session_id: str, role, callback: RemoteCandidateCallback
    ) -> None:
        role = Role(role)
        self._callbacks[(session_id, role)] = callback
        await self._call(SUBSCRIBE_TOPIC, {"session_id": session_id, "role": role.value})

    async def unsubscribe_candidates(self, session_id: str, role) -> None:
        self._callbacks.pop((session_id, Role(role)), None)

    async def close(self) -> None:
        self._callbacks.clear()
        if self.client.connected:
            await self.client.disconnect()
