from .base import SignalingTransport
from .local_transport import LocalSignalingTransport
from .http_transport import HttpSignalingTransport
from .socketio_transport import SocketIOSignalingTransport

__all__ = [
    "SignalingTransport",
    "LocalSignalingTransport",
    "HttpSignalingTransport",
    "SocketIOSignalingTransport",
]
