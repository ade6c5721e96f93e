"""
Client side of the signaling layer: one managed peer connection per stream.
"""

from .manager import (
    ClientConnectionManager,
    STATUS_IDLE,
    STATUS_CONNECTING,
    STATUS_CONNECTED,
    STATUS_DISCONNECTED,
    STATUS_ERROR,
)
from .poller import CandidatePoller
from .transports import (
    SignalingTransport,
    LocalSignalingTransport,
    HttpSignalingTransport,
    SocketIOSignalingTransport,
)

__all__ = [
    "ClientConnectionManager",
    "CandidatePoller",
    "SignalingTransport",
    "LocalSignalingTransport",
    "HttpSignalingTransport",
    "SocketIOSignalingTransport",
    "STATUS_IDLE",
    "STATUS_CONNECTING",
    "STATUS_CONNECTED",
    "STATUS_DISCONNECTED",
    "STATUS_ERROR",
]
