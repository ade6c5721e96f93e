"""
WebRTC Controller

Exposes the signaling coordinator to clients over Socket.IO. Answers are
produced by a server-side media relay or, without one, posted by a remote
peer through the HTTP controller.
"""

import logging
from typing import Optional

import socketio

from tools.logger import log_info
from tools.settings import CoordinatorSettings, DEFAULT_ICE_SERVERS
from use_cases.media_relay import RelayAnswerer
from use_cases.signaling import SignalingCoordinator


class PingFilter(logging.Filter):
    """Filter to suppress ping/pong log messages from socketio/engineio."""

    def filter(self, record):
        message = record.getMessage().lower()
        if "ping" in message or "pong" in message:
            return False
        return True


def _configure_socketio_logging():
    """Configure socketio and engineio loggers to filter ping/pong messages."""
    ping_filter = PingFilter()

    for logger_name in ["socketio", "engineio", "socketio.server", "engineio.server"]:
        logger = logging.getLogger(logger_name)
        logger.addFilter(ping_filter)


def create_coordinator(
    settings: Optional[CoordinatorSettings] = None,
    answerer: str = "relay",
    ice_servers=DEFAULT_ICE_SERVERS,
) -> SignalingCoordinator:
    """
    Build the coordinator for this process.

    Args:
        settings: Coordinator timing and delivery settings
        answerer: "relay" to answer with a server-side media relay,
            "none" to wait for answers posted by a remote peer
        ice_servers: STUN/TURN URLs for the relay peer connections
    """
    if answerer == "relay":
        provider = RelayAnswerer(ice_servers=ice_servers)
    elif answerer == "none":
        provider = None
    else:
        raise ValueError(f"Unknown answerer: {answerer}")

    log_info(f"Creating signaling coordinator (answerer: {answerer})")
    return SignalingCoordinator(answer_provider=provider, settings=settings)


def get_server(debug: bool = False) -> socketio.AsyncServer:
    _configure_socketio_logging()

    server = socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins="*",
        logger=debug,
        engineio_logger=debug,
    )

    @server.event
    async def connect(sid, environ, *args):
        log_info(f"Signaling client connected: {sid}")

    return server


def init(server, coordinator):
    """
    Initialize the WebRTC controller by registering signaling handlers.

    Args:
        server: Socket.IO server for signaling
        coordinator: SignalingCoordinator instance
    """
    from .signaling import initialize_signaling

    log_info("Initializing WebRTC Controller...")
    subscriptions = initialize_signaling(server, coordinator)
    log_info("WebRTC Controller initialized successfully.")
    return subscriptions
