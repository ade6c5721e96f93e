"""
Signaling core: session registry, candidate buffering and the coordinator
that drives both.
"""

from .errors import (
    SignalingError,
    DuplicateSession,
    NotFound,
    InvalidTransition,
    DescriptionConflict,
    SessionTerminated,
    SignalingTimeout,
    TransportError,
    InvalidMessage,
    error_from_response,
)
from .session_store import Role, Session, SessionState, SessionStore
from .candidate_queue import CandidateQueue, CandidateRecord
from .coordinator import AnswerProvider, SignalingCoordinator

__all__ = [
    "SignalingError",
    "DuplicateSession",
    "NotFound",
    "InvalidTransition",
    "DescriptionConflict",
    "SessionTerminated",
    "SignalingTimeout",
    "TransportError",
    "InvalidMessage",
    "error_from_response",
    "Role",
    "Session",
    "SessionState",
    "SessionStore",
    "CandidateQueue",
    "CandidateRecord",
    "AnswerProvider",
    "SignalingCoordinator",
]
