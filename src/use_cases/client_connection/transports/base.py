"""
Signaling transport interface used by the client connection manager.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Tuple

from tools.settings import REQUEST_TIMEOUT_SECONDS
from use_cases.signaling import Role, SignalingTimeout


RemoteCandidateCallback = Callable[[dict], Awaitable[None]]


class SignalingTransport:
    """
    Client view of the signaling coordinator.

    Every call is bounded by request_timeout; exceeding it raises
    SignalingTimeout. Network failures raise TransportError and coordinator
    rejections raise the matching SignalingError subclass.
    """

    supports_push = False

    def __init__(self, request_timeout: float = REQUEST_TIMEOUT_SECONDS):
        self.request_timeout = request_timeout

    async def _bounded(self, awaitable, operation: str, session_id: Optional[str] = None):
        try:
            return await asyncio.wait_for(awaitable, self.request_timeout)
        except asyncio.TimeoutError:
            raise SignalingTimeout(
                f"{operation} timed out after {self.request_timeout}s",
                session_id=session_id,
            )

    async def send_offer(self, session_id: Optional[str], role: Role, sdp: str) -> Tuple[str, str]:
        """Submit an offer; returns (session_id, answer_sdp)."""
        raise NotImplementedError("Subclasses should implement this!")

    async def send_candidate(self, session_id: str, role: Role, payload: dict) -> None:
        raise NotImplementedError("Subclasses should implement this!")

    async def poll_candidates(self, session_id: str, role: Role) -> List[dict]:
        """Candidates produced by the remote side of role, oldest first."""
        raise NotImplementedError("Subclasses should implement this!")

    async def report_state(self, session_id: str, role: Role, state: str) -> None:
        raise NotImplementedError("Subclasses should implement this!")

    async def close_session(self, session_id: str, role: Role) -> None:
        raise NotImplementedError("Subclasses should implement this!")

    async def subscribe_candidates(
        self, session_id: str, role: Role, callback: RemoteCandidateCallback
    ) -> None:
        """Have remote candidates pushed to callback as they are produced."""
        raise NotImplementedError(f"{type(self).__name__} does not support push delivery")

    async def unsubscribe_candidates(self, session_id: str, role: Role) -> None:
        return None

    async def close(self) -> None:
        """Release transport resources."""
        return None
