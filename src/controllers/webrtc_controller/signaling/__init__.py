"""
WebRTC Signaling Module

Handles WebRTC signaling messages (offer, ICE candidates, connection state,
candidate subscriptions and disconnects) via Socket.IO.
"""

from .offer_handler import init as init_offer_handler
from .ice_handler import init as init_ice_handler
from .state_handler import init as init_state_handler
from .subscribe_handler import PushSubscriptions, init as init_subscribe_handler
from .disconnect_handler import init as init_disconnect_handler


def initialize_signaling(server, coordinator) -> PushSubscriptions:
    """
    Initialize all signaling handlers.

    Args:
        server: Socket.IO server
        coordinator: SignalingCoordinator instance

    Returns:
        The push subscription registry used by the handlers
    """
    subscriptions = PushSubscriptions(server, coordinator)
    init_offer_handler(server, coordinator)
    init_ice_handler(server, coordinator)
    init_state_handler(server, coordinator)
    init_subscribe_handler(server, coordinator, subscriptions)
    init_disconnect_handler(server, coordinator)
    return subscriptions
