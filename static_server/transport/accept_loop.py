"""Connection acceptance loops for the site and health listeners."""

import logging
import socket
import threading
from dataclasses import dataclass

from static_server.domain.correlation_id import CorrelationLoggerAdapter
from static_server.domain.response_builders import draining_response
from static_server.lifecycle.state import ServerLifecycle
from static_server.pipeline.io import send_response
from static_server.transport.context import WorkerContext
from static_server.transport.worker import handle_client

ACCEPT_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.transport.accept"), {}
)


@dataclass
class Listener:
    """A bound socket and the worker context its connections are served with."""

    name: str
    server_socket: socket.socket
    context: WorkerContext


def _handle_accepted_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    if ACCEPT_LOGGER.logger.isEnabledFor(logging.DEBUG):
        ACCEPT_LOGGER.debug(
            "Client connection accepted",
            extra={
                "event": "client_accepted",
                "client": f"{client_address[0]}:{client_address[1]}",
                "listener": context.listener_name,
            },
        )
    thread = threading.Thread(
        target=handle_client,
        args=(client_socket, client_address, context),
        daemon=True,
    )
    thread.start()


def accept_connections(listener: Listener, lifecycle: ServerLifecycle) -> None:
    """Accept connections until the lifecycle asks the listeners to stop."""
    server_socket = listener.server_socket
    host, port = server_socket.getsockname()[:2]
    ACCEPT_LOGGER.info(
        "Server listening for connections",
        extra={
            "event": "server_listening",
            "listener": listener.name,
            "host": host,
            "port": port,
        },
    )
    try:
        while True:
            try:
                client_socket, client_address = server_socket.accept()
            except socket.timeout:
                if lifecycle.should_stop():
                    break
                continue
            except OSError as error:
                if lifecycle.should_stop():
                    break
                ACCEPT_LOGGER.error(
                    "Socket accept failed",
                    extra={
                        "event": "accept_error",
                        "listener": listener.name,
                        "error_type": type(error).__name__,
                    },
                )
                continue

            if lifecycle.is_draining():
                try:
                    send_response(client_socket, draining_response())
                finally:
                    client_socket.close()
                continue

            _handle_accepted_client(client_socket, client_address, listener.context)
    finally:
        server_socket.close()
        ACCEPT_LOGGER.info(
            "Listener closed",
            extra={"event": "listener_closed", "listener": listener.name},
        )


def run_server(
    listeners: list[Listener], lifecycle: ServerLifecycle, grace_seconds: float
) -> bool:
    """Serve every listener until draining begins, then wait for workers.

    Returns False when in-flight requests were still running after the grace
    period; those connections are abandoned when the process exits.
    """
    threads = [
        threading.Thread(
            target=accept_connections,
            args=(listener, lifecycle),
            name=f"accept-{listener.name}",
            daemon=True,
        )
        for listener in listeners
    ]
    for thread in threads:
        thread.start()

    while not lifecycle.wait_for_draining(0.5):
        pass

    ACCEPT_LOGGER.info(
        "Waiting for active connections to complete",
        extra={"event": "shutdown_waiting", "grace_seconds": grace_seconds},
    )
    drained = lifecycle.wait_for_workers(grace_seconds)
    lifecycle.request_stop()
    for thread in threads:
        thread.join(timeout=1.0)
    ACCEPT_LOGGER.info(
        "Server shutdown complete",
        extra={"event": "server_stopped", "drained": drained},
    )
    return drained
