"""
Session Store

In-memory registry of role-scoped signaling sessions.

Sessions are keyed by (session_id, role): a publisher and a subscriber may
share a human-chosen session id while remaining independent state machines.
"""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from .errors import DescriptionConflict, DuplicateSession, InvalidTransition, NotFound


class Role(Enum):
    """Side of the call a session belongs to."""
    PUBLISHER = "publisher"
    SUBSCRIBER = "subscriber"

    @property
    def opposite(self) -> "Role":
        return Role.SUBSCRIBER if self is Role.PUBLISHER else Role.PUBLISHER


class SessionState(Enum):
    """Signaling session states."""
    CREATED = "created"                # Session registered, no offer yet
    OFFER_RECEIVED = "offer_received"  # Remote offer recorded
    ANSWERED = "answered"              # Answer recorded, ICE may start
    CONNECTING = "connecting"          # Peer connection is checking candidates
    CONNECTED = "connected"            # Media path established
    DISCONNECTED = "disconnected"      # Connection lost
    FAILED = "failed"                  # Connection or handshake failed
    CLOSED = "closed"                  # Session closed

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.FAILED, SessionState.CLOSED)


TRANSITIONS = {
    SessionState.CREATED: {SessionState.OFFER_RECEIVED},
    SessionState.OFFER_RECEIVED: {SessionState.ANSWERED},
    SessionState.ANSWERED: {SessionState.CONNECTING},
    SessionState.CONNECTING: {SessionState.CONNECTED, SessionState.DISCONNECTED},
    SessionState.CONNECTED: {SessionState.DISCONNECTED},
    SessionState.DISCONNECTED: set(),
    SessionState.FAILED: set(),
    SessionState.CLOSED: set(),
}

# Every non-terminal state may fail, every state but closed may be closed.
for _state, _targets in TRANSITIONS.items():
    if not _state.is_terminal:
        _targets.add(SessionState.FAILED)
    if _state is not SessionState.CLOSED:
        _targets.add(SessionState.CLOSED)


def is_transition_allowed(current: SessionState, new_state: SessionState) -> bool:
    return new_state in TRANSITIONS[current]


SessionKey = Tuple[str, Role]


@dataclass
class Session:
    session_id: str
    role: Role
    created_at: float
    last_activity_at: float
    state: SessionState = SessionState.CREATED
    remote_description: Optional[str] = None  # offer received from the client
    local_description: Optional[str] = None   # answer produced for the client
    connection_state: str = "new"
    failed_at: Optional[float] = None

    @property
    def key(self) -> SessionKey:
        return (self.session_id, self.role)

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "role": self.role.value,
            "state": self.state.value,
            "connection_state": self.connection_state,
            "has_offer": self.remote_description is not None,
            "has_answer": self.local_description is not None,
        }


class SessionStore:
    """
    Thread-safe registry of signaling sessions.

    Critical sections are short and never span an await, so operations on
    distinct sessions never wait on each other for longer than a dict update.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._lock = threading.Lock()
        self._sessions: Dict[SessionKey, Session] = {}
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def create(self, session_id: str, role) -> Session:
        """
        Register a new session in the created state.

        A terminal session still waiting for removal is replaced.

        Raises:
            DuplicateSession: an active session with the same key exists
        """
        role = Role(role)
        with self._lock:
            existing = self._sessions.get((session_id, role))
            if existing and not existing.state.is_terminal:
                raise DuplicateSession(
                    f"Session {session_id} ({role.value}) already exists",
                    session_id=session_id,
                    role=role.value,
                )
            now = self._clock()
            session = Session(
                session_id=session_id,
                role=role,
                created_at=now,
                last_activity_at=now,
            )
            self._sessions[session.key] = session
            return session

    def get(self, session_id: str, role) -> Session:
        role = Role(role)
        with self._lock:
            return self._get_unlocked(session_id, role)

    def find(self, session_id: str, role) -> Optional[Session]:
        """Return the session or None, without raising."""
        with self._lock:
            return self._sessions.get((session_id, Role(role)))

    def _get_unlocked(self, session_id: str, role: Role) -> Session:
        session = self._sessions.get((session_id, role))
        if session is None:
            raise NotFound(
                f"Session {session_id} ({role.value}) not found",
                session_id=session_id,
                role=role.value,
            )
        return session

    def _transition_unlocked(self, session: Session, new_state: SessionState) -> None:
        if not is_transition_allowed(session.state, new_state):
            raise InvalidTransition(
                f"Session {session.session_id} ({session.role.value}) cannot go "
                f"from {session.state.value} to {new_state.value}",
                session_id=session.session_id,
                role=session.role.value,
            )
        session.state = new_state
        session.last_activity_at = self._clock()
        if new_state is SessionState.FAILED:
            session.failed_at = session.last_activity_at

    def transition(self, session_id: str, role, new_state) -> SessionState:
        """
        Move a session to new_state.

        Returns:
            The state the session was in before the transition

        Raises:
            NotFound, InvalidTransition (nothing is mutated on failure)
        """
        role = Role(role)
        new_state = SessionState(new_state)
        with self._lock:
            session = self._get_unlocked(session_id, role)
            old_state = session.state
            self._transition_unlocked(session, new_state)
            return old_state

    def record_description(
        self,
        session_id: str,
        role,
        attribute: str,
        sdp: str,
        new_state: SessionState,
    ) -> bool:
        """
        Store a write-once description and advance the state in one step.

        Returns:
            True if the description was stored, False if the identical
            description was already present (idempotent repeat)

        Raises:
            NotFound, DescriptionConflict, InvalidTransition
        """
        role = Role(role)
        with self._lock:
            session = self._get_unlocked(session_id, role)
            current = getattr(session, attribute)
            if current is not None:
                if current == sdp:
                    session.last_activity_at = self._clock()
                    return False
                raise DescriptionConflict(
                    f"Session {session_id} ({role.value}) already has a different "
                    f"{attribute.replace('_', ' ')}",
                    session_id=session_id,
                    role=role.value,
                )
            self._transition_unlocked(session, new_state)
            setattr(session, attribute, sdp)
            return True

    def set_connection_state(self, session_id: str, role, connection_state: str) -> None:
        role = Role(role)
        with self._lock:
            session = self._get_unlocked(session_id, role)
            session.connection_state = connection_state
            session.last_activity_at = self._clock()

    def touch(self, session_id: str, role) -> bool:
        """Update last activity timestamp for a session."""
        with self._lock:
            session = self._sessions.get((session_id, Role(role)))
            if session:
                session.last_activity_at = self._clock()
                return True
            return False

    def remove(self, session_id: str, role) -> Optional[Session]:
        """Remove a session; returns the removed session or None."""
        with self._lock:
            return self._sessions.pop((session_id, Role(role)), None)

    def sessions(self) -> List[Session]:
        """Snapshot of every stored session."""
        with self._lock:
            return list(self._sessions.values())

    def list_sessions(self) -> List[dict]:
        return [session.to_dict() for session in self.sessions()]

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)
