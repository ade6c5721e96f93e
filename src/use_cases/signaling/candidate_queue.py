"""
Candidate Queue

Per-session, per-role FIFO buffer of ICE candidates awaiting delivery.

A bucket is keyed by (session_id, role) and holds the candidates *produced by*
that role. Records leave a bucket only through drain() (poll delivery, or push
delivery when the coordinator drains right after enqueueing) or discard().
"""

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Set, Tuple

from .session_store import Role


@dataclass
class CandidateRecord:
    session_id: str
    role: Role
    candidate: Optional[str]
    sdp_mid: Optional[str] = None
    sdp_mline_index: Optional[int] = None
    enqueued_at: float = field(default_factory=time.monotonic)

    @property
    def is_end_of_candidates(self) -> bool:
        return not self.candidate

    def to_payload(self) -> dict:
        """Wire representation, as consumed by RTCPeerConnection.addIceCandidate."""
        return {
            "candidate": self.candidate,
            "sdpMid": self.sdp_mid,
            "sdpMLineIndex": self.sdp_mline_index,
        }


BucketKey = Tuple[str, Role]


class CandidateQueue:
    """Thread-safe FIFO candidate buckets."""

    def __init__(self):
        self._lock = threading.Lock()
        self._buckets: Dict[BucketKey, Deque[CandidateRecord]] = {}
        self._gathering_complete: Set[BucketKey] = set()

    def enqueue(self, record: CandidateRecord) -> bool:
        """
        Append a candidate to the bucket of the role that produced it.

        An empty candidate only marks gathering as complete for the bucket.

        Returns:
            True if a deliverable candidate was buffered
        """
        key = (record.session_id, Role(record.role))
        with self._lock:
            if record.is_end_of_candidates:
                self._gathering_complete.add(key)
                return False
            self._buckets.setdefault(key, deque()).append(record)
            return True

    def drain(self, session_id: str, role) -> List[CandidateRecord]:
        """Remove and return every buffered record, oldest first."""
        key = (session_id, Role(role))
        with self._lock:
            bucket = self._buckets.get(key)
            if not bucket:
                return []
            records = list(bucket)
            bucket.clear()
            return records

    def pending(self, session_id: str, role) -> int:
        with self._lock:
            return len(self._buckets.get((session_id, Role(role)), ()))

    def is_gathering_complete(self, session_id: str, role) -> bool:
        with self._lock:
            return (session_id, Role(role)) in self._gathering_complete

    def discard(self, session_id: str, role) -> int:
        """Drop a bucket and its gathering flag; returns the number of records dropped."""
        key = (session_id, Role(role))
        with self._lock:
            self._gathering_complete.discard(key)
            bucket = self._buckets.pop(key, None)
            return len(bucket) if bucket else 0
