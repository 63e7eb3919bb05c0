"""Socket creation and TLS configuration."""

import logging
import socket
import ssl
from typing import Optional

from static_server.bootstrap.config import ListenerAddress
from static_server.domain.correlation_id import CorrelationLoggerAdapter
from static_server.domain.errors import ListenerError

SOCKET_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.bootstrap.socket"), {}
)


def create_server_socket(
    address: ListenerAddress,
    cert_path: Optional[str] = None,
    key_path: Optional[str] = None,
) -> socket.socket:
    """Create a listening socket, wrapped in TLS when a certificate is given.

    Raises ListenerError when the address cannot be bound or the TLS material
    cannot be loaded.
    """
    try:
        server_socket = socket.create_server(
            (address.host, address.port), reuse_port=hasattr(socket, "SO_REUSEPORT")
        )
    except OSError as error:
        SOCKET_LOGGER.critical(
            "Failed to bind listener",
            extra={
                "event": "listen_failed",
                "host": address.host,
                "port": address.port,
                "error": str(error),
            },
        )
        raise ListenerError(f"Unable to listen on {address}: {error}") from error
    server_socket.settimeout(0.5)

    if cert_path is not None:
        try:
            tls_context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
            tls_context.load_cert_chain(cert_path, key_path or None)
        except (ssl.SSLError, OSError) as error:
            server_socket.close()
            SOCKET_LOGGER.critical(
                "Failed to load TLS certificates",
                extra={"event": "tls_load_failed", "error": str(error)},
            )
            raise ListenerError(f"Unable to load TLS material: {error}") from error
        server_socket = tls_context.wrap_socket(server_socket, server_side=True)
    return server_socket
