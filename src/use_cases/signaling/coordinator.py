"""
Signaling Coordinator

Orchestrates the offer/answer handshake, candidate admission and the session
lifecycle for role-scoped signaling sessions.

Flow for one session:
1. submit_offer records the client's offer and obtains an answer, either from
   the configured answer provider or from a remote peer calling submit_answer
2. submit_candidate buffers candidates in the CandidateQueue; they are pushed
   to an attached consumer at once or retrieved later with poll_candidates
3. report_state follows the peer connection through connecting/connected
4. close, terminal failure or idle timeout removes the session
"""

import asyncio
import inspect
import uuid
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Union

from tools.logger import log_info, log_debug, log_error, log_warning
from tools.settings import CoordinatorSettings

from .candidate_queue import CandidateQueue, CandidateRecord
from .errors import NotFound, SessionTerminated, SignalingTimeout
from .session_store import Role, Session, SessionState, SessionStore


CandidateSink = Callable[[CandidateRecord], Union[None, Awaitable[None]]]

# Peer connection states reported by clients, mapped onto session states
PEER_STATE_MAP = {
    "connecting": SessionState.CONNECTING,
    "connected": SessionState.CONNECTED,
    "disconnected": SessionState.DISCONNECTED,
    "failed": SessionState.FAILED,
}


class AnswerProvider:
    """
    Produces the answer for an offer on the coordinator side.

    Subclasses implement create_answer; release is called once the session
    is removed so any server-side resources can be freed.
    """

    coordinator = None

    def bind(self, coordinator) -> None:
        """Called by the coordinator that owns this provider."""
        self.coordinator = coordinator

    async def create_answer(self, session_id: str, role: Role, offer_sdp: str) -> str:
        raise NotImplementedError("Subclasses should implement this!")

    async def release(self, session_id: str, role: Role) -> None:
        return None


class SignalingCoordinator:
    """
    Owns the SessionStore and CandidateQueue for every signaling session.

    When no answer provider is configured the coordinator relays: the offer
    waits (bounded by answer_timeout) until a remote peer posts the answer.
    """

    def __init__(
        self,
        answer_provider: Optional[AnswerProvider] = None,
        settings: Optional[CoordinatorSettings] = None,
        store: Optional[SessionStore] = None,
        queue: Optional[CandidateQueue] = None,
    ):
        self.settings = settings or CoordinatorSettings()
        self.store = store or SessionStore()
        self.queue = queue or CandidateQueue()
        self._answer_provider = answer_provider
        if answer_provider is not None:
            answer_provider.bind(self)
        self._answer_events: Dict[Tuple[str, Role], asyncio.Event] = {}
        self._consumers: Dict[Tuple[str, Role], CandidateSink] = {}
        # bucket key -> role of the session the consumer belongs to
        self._consumer_owners: Dict[Tuple[str, Role], Role] = {}
        self._closed_callbacks: List[Callable] = []
        self._cleanup_task: Optional[asyncio.Task] = None

    @property
    def delivery_mode(self) -> str:
        return self.settings.delivery_mode

    @property
    def has_answer_provider(self) -> bool:
        """Answers come from this process; remote candidates travel in the answer."""
        return self._answer_provider is not None

    # ------------------------------------------------------------------
    # Background reaping
    # ------------------------------------------------------------------

    async def start(self):
        """Start the coordinator background tasks."""
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())
            log_info("Signaling session cleanup task started")

    async def stop(self):
        """Stop the coordinator and close all sessions."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
        await self.close_all()
        log_info("Signaling coordinator stopped")

    async def _cleanup_loop(self):
        """Background task to reap stale sessions."""
        while True:
            try:
                await asyncio.sleep(self.settings.cleanup_interval)
                await self.reap()
            except asyncio.CancelledError:
                break
            except Exception as e:
                log_error(f"Error in session cleanup loop: {e}")

    async def reap(self) -> int:
        """
        Apply the timeout policy once.

        Idle non-terminal sessions are failed, failed sessions past their
        grace window and closed sessions are removed.

        Returns:
            Number of sessions removed
        """
        now = self.store.now()
        removed = 0

        for session in self.store.sessions():
            if session.state is SessionState.CLOSED:
                await self._release(session, reason="closed")
                removed += 1
            elif session.state is SessionState.FAILED:
                failed_at = session.failed_at or session.last_activity_at
                if now - failed_at > self.settings.failed_grace:
                    await self._release(session, reason="failed")
                    removed += 1
            elif now - session.last_activity_at > self.settings.idle_timeout:
                log_warning(
                    f"Failing stale session {session.session_id} ({session.role.value}), "
                    f"inactive > {self.settings.idle_timeout}s"
                )
                self._fail(session.session_id, session.role)

        return removed

    # ------------------------------------------------------------------
    # Offer / answer
    # ------------------------------------------------------------------

    async def submit_offer(
        self, session_id: Optional[str], role, sdp: str
    ) -> Tuple[str, str]:
        """
        Record a client offer and return the answer.

        A repeated identical offer returns the same answer; a different one
        raises DescriptionConflict. A terminal session with the same key is
        replaced by a fresh one.

        Returns:
            (session_id, answer_sdp)
        """
        role = Role(role)
        session_id = session_id or uuid.uuid4().hex

        existing = self.store.find(session_id, role)
        if existing is not None and existing.state.is_terminal:
            await self._release(existing, reason="replaced")
            existing = None
        if existing is None:
            self.store.create(session_id, role)
            log_info(f"Created signaling session {session_id} ({role.value})")

        stored = self.store.record_description(
            session_id, role, "remote_description", sdp, SessionState.OFFER_RECEIVED
        )
        if not stored:
            log_debug(f"Repeated identical offer for session {session_id} ({role.value})")
            return session_id, await self._wait_for_answer(session_id, role)

        log_info(f"Received offer for session {session_id} ({role.value})")

        if self._answer_provider is None:
            return session_id, await self._wait_for_answer(session_id, role)

        try:
            answer = await self._answer_provider.create_answer(session_id, role, sdp)
        except Exception as e:
            log_error(f"Error creating answer for session {session_id} ({role.value}): {e}")
            self._fail(session_id, role)
            raise

        await self.submit_answer(session_id, role, answer)
        return session_id, answer

    async def submit_answer(self, session_id: str, role, sdp: str) -> bool:
        """
        Record the answer for a session (write-once).

        Returns:
            True if stored, False for an identical repeat
        """
        role = Role(role)
        stored = self.store.record_description(
            session_id, role, "local_description", sdp, SessionState.ANSWERED
        )
        if stored:
            log_info(f"Answer recorded for session {session_id} ({role.value})")
        event = self._answer_events.get((session_id, role))
        if event:
            event.set()
        return stored

    def get_offer(self, session_id: str, role) -> Optional[str]:
        """Offer waiting to be answered by a remote peer (relay mode)."""
        return self.store.get(session_id, role).remote_description

    async def _wait_for_answer(self, session_id: str, role: Role) -> str:
        key = (session_id, role)
        session = self.store.get(session_id, role)
        if session.local_description is not None:
            return session.local_description

        event = self._answer_events.setdefault(key, asyncio.Event())
        try:
            await asyncio.wait_for(event.wait(), self.settings.answer_timeout)
        except asyncio.TimeoutError:
            self._fail(session_id, role)
            raise SignalingTimeout(
                f"No answer for session {session_id} ({role.value}) "
                f"within {self.settings.answer_timeout}s",
                session_id=session_id,
                role=role.value,
            )

        session = self.store.find(session_id, role)
        if session is None or session.local_description is None:
            raise SessionTerminated(
                f"Session {session_id} ({role.value}) ended before an answer arrived",
                session_id=session_id,
                role=role.value,
            )
        return session.local_description

    # ------------------------------------------------------------------
    # Candidates
    # ------------------------------------------------------------------

    async def submit_candidate(
        self,
        session_id: str,
        role,
        candidate: Optional[str],
        sdp_mid: Optional[str] = None,
        sdp_mline_index: Optional[int] = None,
    ) -> bool:
        """
        Admit a candidate produced by the given role.

        Accepted in every state except closed and failed, so candidates that
        arrive before the connection is up are kept.

        Returns:
            True if a deliverable candidate was buffered, False for
            the end-of-candidates marker
        """
        role = Role(role)
        session = self.store.get(session_id, role)
        if session.state.is_terminal:
            raise SessionTerminated(
                f"Session {session_id} ({role.value}) is {session.state.value}",
                session_id=session_id,
                role=role.value,
            )
        self.store.touch(session_id, role)

        record = CandidateRecord(
            session_id=session_id,
            role=role,
            candidate=candidate,
            sdp_mid=sdp_mid,
            sdp_mline_index=sdp_mline_index,
        )
        if not self.queue.enqueue(record):
            log_debug(f"End of ICE candidates for session {session_id} ({role.value})")
            return False

        log_debug(f"Queued ICE candidate for session {session_id} ({role.value})")
        if (session_id, role) in self._consumers:
            await self._flush(session_id, role)
        return True

    def poll_candidates(self, session_id: str, role) -> List[CandidateRecord]:
        """
        Drain the candidates produced by the remote side of a caller in role.

        Returns an empty list when nothing is buffered.

        Raises:
            NotFound: neither side of the session exists
        """
        role = Role(role)
        remote = role.opposite
        if self.store.find(session_id, role) is None and self.store.find(session_id, remote) is None:
            raise NotFound(f"Session {session_id} not found", session_id=session_id)

        self.store.touch(session_id, role)
        return self.queue.drain(session_id, remote)

    def is_gathering_complete(self, session_id: str, role) -> bool:
        return self.queue.is_gathering_complete(session_id, role)

    async def attach_consumer(
        self, session_id: str, producer_role, sink: CandidateSink, owner_role=None
    ) -> None:
        """
        Push every candidate produced by producer_role to sink.

        Anything already buffered is flushed immediately. The consumer is
        detached when the owning session (owner_role, by default the remote
        side of producer_role) is removed.
        """
        key = (session_id, Role(producer_role))
        owner = Role(owner_role) if owner_role is not None else key[1].opposite
        if key in self._consumers:
            log_warning(f"Replacing candidate consumer for session {session_id} ({key[1].value})")
        self._consumers[key] = sink
        self._consumer_owners[key] = owner
        await self._flush(*key)

    def detach_consumer(self, session_id: str, producer_role, sink: Optional[CandidateSink] = None) -> bool:
        key = (session_id, Role(producer_role))
        current = self._consumers.get(key)
        if current is None or (sink is not None and current is not sink):
            return False
        del self._consumers[key]
        self._consumer_owners.pop(key, None)
        return True

    async def _flush(self, session_id: str, role: Role) -> None:
        sink = self._consumers.get((session_id, role))
        if sink is None:
            return
        for record in self.queue.drain(session_id, role):
            try:
                result = sink(record)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                log_error(f"Error pushing candidate for session {session_id} ({role.value}): {e}")

    # ------------------------------------------------------------------
    # Connection state
    # ------------------------------------------------------------------

    def report_connecting(self, session_id: str, role) -> None:
        self._report(session_id, role, SessionState.CONNECTING)

    def report_connected(self, session_id: str, role) -> None:
        self._report(session_id, role, SessionState.CONNECTED)

    def report_disconnected(self, session_id: str, role) -> None:
        self._report(session_id, role, SessionState.DISCONNECTED)

    def report_failed(self, session_id: str, role) -> None:
        self._report(session_id, role, SessionState.FAILED)

    def _report(self, session_id: str, role, new_state: SessionState) -> None:
        role = Role(role)
        session = self.store.get(session_id, role)
        if session.state is new_state:
            self.store.touch(session_id, role)
            return
        old_state = self.store.transition(session_id, role, new_state)
        log_info(f"Session {session_id} ({role.value}) state: {old_state.value} -> {new_state.value}")

    async def report_state(self, session_id: str, role, connection_state: str) -> None:
        """
        Forward a peer connection state onto the session state machine.

        Args:
            connection_state: RTCPeerConnection.connectionState value
        """
        role = Role(role)
        self.store.set_connection_state(session_id, role, connection_state)

        if connection_state == "new":
            return
        if connection_state == "closed":
            await self.close(session_id, role, reason="connection_closed")
            return

        new_state = PEER_STATE_MAP.get(connection_state)
        if new_state is None:
            raise ValueError(f"Unknown connection state: {connection_state}")
        self._report(session_id, role, new_state)

    def _fail(self, session_id: str, role: Role) -> None:
        session = self.store.find(session_id, role)
        if session is None or session.state.is_terminal:
            return
        self.store.transition(session_id, role, SessionState.FAILED)
        log_warning(f"Session {session_id} ({role.value}) marked as failed")

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def close(self, session_id: str, role, reason: str = "requested") -> bool:
        """
        Close and remove a session.

        Returns:
            True if the session was closed, False if not found
        """
        role = Role(role)
        session = self.store.find(session_id, role)
        if session is None:
            log_warning(f"Session {session_id} ({role.value}) not found for closing")
            return False

        if session.state is not SessionState.CLOSED:
            self.store.transition(session_id, role, SessionState.CLOSED)
        await self._release(session, reason=reason)
        return True

    async def _release(self, session: Session, reason: str) -> None:
        """Remove a session and everything attached to it."""
        session_id, role = session.key
        if self.store.remove(session_id, role) is None:
            return

        dropped = self.queue.discard(session_id, role)
        if dropped:
            log_debug(f"Dropped {dropped} undelivered candidates for session {session_id}")
        for producer in Role:
            key = (session_id, producer)
            if producer is role or self._consumer_owners.get(key) is role:
                self._consumers.pop(key, None)
                self._consumer_owners.pop(key, None)

        event = self._answer_events.pop((session_id, role), None)
        if event:
            event.set()

        if self._answer_provider is not None:
            try:
                await self._answer_provider.release(session_id, role)
            except Exception as e:
                log_error(f"Error releasing answer provider for session {session_id}: {e}")

        log_info(f"Removed session {session_id} ({role.value}) (reason: {reason})")

        for callback in list(self._closed_callbacks):
            try:
                result = callback(session_id, role, reason)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                log_error(f"Error in session closed callback: {e}")

    async def close_all(self):
        """Close all sessions."""
        for session in self.store.sessions():
            if session.state is not SessionState.CLOSED:
                self.store.transition(session.session_id, session.role, SessionState.CLOSED)
            await self._release(session, reason="shutdown")
        log_info("All signaling sessions closed")

    def on_session_closed(self, callback: Callable):
        """Register a callback(session_id, role, reason) for removed sessions."""
        self._closed_callbacks.append(callback)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_session(self, session_id: str, role) -> Session:
        return self.store.get(session_id, role)

    def list_sessions(self) -> List[dict]:
        return self.store.list_sessions()

    def get_session_count(self) -> int:
        return self.store.count()
