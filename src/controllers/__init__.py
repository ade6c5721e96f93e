from .webrtc_controller import (
    init as init_webrtc_controller,
    get_server as get_signaling_server,
    create_coordinator,
)
from .http_controller import create_app
from tools.logger import *
from hypercorn.asyncio import serve
from hypercorn.config import Config
import socketio


def build_asgi_app(coordinator, debug=False):
    """
    Compose the Socket.IO server and the HTTP routes into one ASGI app.
    """
    server = get_signaling_server(debug=debug)
    init_webrtc_controller(server, coordinator)
    return socketio.ASGIApp(server, other_asgi_app=create_app(coordinator))


async def main_signaling_task(host, port, settings, answerer="relay", ice_servers=None):
    """
    Main function to serve the signaling endpoints until shutdown.
    """
    kwargs = {"ice_servers": ice_servers} if ice_servers else {}
    coordinator = create_coordinator(settings, answerer=answerer, **kwargs)
    app = build_asgi_app(coordinator)

    config = Config()
    config.bind = [f"{host}:{port}"]

    await coordinator.start()
    log_info(f"Signaling server listening on {host}:{port}")
    try:
        await serve(app, config)
    finally:
        await coordinator.stop()
