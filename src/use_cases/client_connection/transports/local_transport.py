"""
In-process transport that talks to a SignalingCoordinator directly.

Used when client and coordinator share an event loop (embedded deployments
and tests).
"""

from typing import Dict, List, Optional, Tuple

from use_cases.signaling import CandidateRecord, Role, SignalingCoordinator

from .base import RemoteCandidateCallback, SignalingTransport


class LocalSignalingTransport(SignalingTransport):

    supports_push = True

    def __init__(self, coordinator: SignalingCoordinator, **kwargs):
        super().__init__(**kwargs)
        self.coordinator = coordinator
        self._sinks: Dict[Tuple[str, Role], object] = {}

    async def send_offer(self, session_id: Optional[str], role, sdp: str) -> Tuple[str, str]:
        return await self._bounded(
            self.coordinator.submit_offer(session_id, role, sdp), "Offer submission", session_id
        )

    async def send_candidate(self, session_id: str, role, payload: dict) -> None:
        await self._bounded(
            self.coordinator.submit_candidate(
                session_id,
                role,
                payload.get("candidate"),
                payload.get("sdpMid"),
                payload.get("sdpMLineIndex"),
            ),
            "Candidate submission",
            session_id,
        )

    async def poll_candidates(self, session_id: str, role) -> List[dict]:
        records = self.coordinator.poll_candidates(session_id, role)
        return [record.to_payload() for record in records]

    async def report_state(self, session_id: str, role, state: str) -> None:
        await self._bounded(
            self.coordinator.report_state(session_id, role, state), "State report", session_id
        )

    async def close_session(self, session_id: str, role) -> None:
        await self._bounded(self.coordinator.close(session_id, role), "Close", session_id)

    async def subscribe_candidates(
        self, session_id: str, role, callback: RemoteCandidateCallback
    ) -> None:
        role = Role(role)
        if self.coordinator.has_answer_provider:
            return

        async def sink(record: CandidateRecord):
            await callback(record.to_payload())

        self._sinks[(session_id, role)] = sink
        await self.coordinator.attach_consumer(session_id, role.opposite, sink)

    async def unsubscribe_candidates(self, session_id: str, role) -> None:
        role = Role(role)
        sink = self._sinks.pop((session_id, role), None)
        if sink is not None:
            self.coordinator.detach_consumer(session_id, role.opposite, sink)
