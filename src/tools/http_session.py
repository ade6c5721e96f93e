import ssl
import os
from typing import Optional
from aiohttp import ClientSession, TCPConnector


def build_ssl_context(
    client_cert: Optional[str] = None,
    client_key: Optional[str] = None,
    ca_file: Optional[str] = None,
) -> ssl.SSLContext:
    """
    TLS context for the signaling endpoint, with an optional client
    certificate for mutual TLS.
    """
    ssl_context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH, cafile=ca_file)
    ssl_context.minimum_version = ssl.TLSVersion.TLSv1_2
    if client_cert and client_key:
        ssl_context.load_cert_chain(
            certfile=os.path.expanduser(client_cert),
            keyfile=os.path.expanduser(client_key),
        )
    ssl_context.check_hostname = True
    ssl_context.verify_mode = ssl.CERT_REQUIRED
    return ssl_context


def get_client_session(ssl_context: Optional[ssl.SSLContext] = None) -> ClientSession:
    """aiohttp session used by the HTTP and Socket.IO signaling transports."""
    if ssl_context is None:
        return ClientSession()
    connector = TCPConnector(ssl=ssl_context)
    return ClientSession(connector=connector)
