"""Worker thread logic for handling individual client connections."""

import logging
import socket
import threading
import time
from dataclasses import dataclass
from typing import Optional

from static_server.bootstrap.config import ALLOWED_METHODS, MAX_BODY_BYTES
from static_server.domain.correlation_id import (
    CorrelationLoggerAdapter,
    clear_correlation_id,
    generate_correlation_id,
    set_correlation_id,
)
from static_server.domain.http_types import HttpRequest, HttpResponse
from static_server.domain.response_builders import (
    bad_request_response,
    draining_response,
    entity_too_large_response,
)
from static_server.pipeline.compression import maybe_compress
from static_server.pipeline.io import receive_request, send_response
from static_server.pipeline.router import route_request
from static_server.pipeline.validation import RequestEntityTooLarge, validate_request
from static_server.security.cors import (
    apply_cors_headers,
    is_preflight_request,
    preflight_response,
)
from static_server.transport.context import HEALTH_ROLE, WorkerContext

WORKER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.transport.worker"), {}
)
ACCESS_LOGGER = CorrelationLoggerAdapter(logging.getLogger("static_server.access"), {})


def _read_request_with_validation(
    client_socket: socket.socket,
    buffer: bytes,
    client_addr_str: str,
) -> tuple[Optional[HttpRequest], bytes, bool]:
    """Read a request from the socket while enforcing size limits."""
    try:
        request, buffer = receive_request(client_socket, buffer)
    except RequestEntityTooLarge:
        WORKER_LOGGER.warning(
            "Request size exceeded limit",
            extra={
                "event": "body_size_exceeded",
                "client": client_addr_str,
                "limit": MAX_BODY_BYTES,
            },
        )
        send_response(client_socket, entity_too_large_response())
        return None, b"", True
    except ValueError:
        WORKER_LOGGER.warning(
            "Malformed request received",
            extra={"event": "malformed_request", "client": client_addr_str},
        )
        send_response(client_socket, bad_request_response(None))
        return None, b"", True

    if request is None:
        if WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
            WORKER_LOGGER.debug(
                "Client disconnected during request",
                extra={"event": "client_disconnected", "client": client_addr_str},
            )
        return None, buffer, True
    return request, buffer, False


def client_label(
    request: HttpRequest, context: WorkerContext, client_addr_str: str
) -> str:
    """Client address for logs, preferring the configured real-IP header."""
    header_name = context.settings.real_ip_header if context.settings else ""
    if header_name:
        forwarded = request.headers.get(header_name, "")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return client_addr_str


def build_response(request: HttpRequest, context: WorkerContext) -> HttpResponse:
    """Validate, route and post-process one request."""
    if context.role != HEALTH_ROLE and is_preflight_request(request):
        return preflight_response(request, context.cors_config)

    response = validate_request(request, ALLOWED_METHODS)
    if response is None:
        response = route_request(request, context)

    if context.role != HEALTH_ROLE:
        apply_cors_headers(response.headers, request, context.cors_config)
        response = maybe_compress(request, response, context.gzip_enabled)
    return response


def _process_request(
    request: HttpRequest,
    context: WorkerContext,
    client_socket: socket.socket,
    client_addr_str: str,
) -> bool:
    started = time.perf_counter()
    response = build_response(request, context)
    send_response(client_socket, response)
    ACCESS_LOGGER.info(
        "Request served",
        extra={
            "event": "request_served",
            "method": request.method,
            "route": request.path,
            "status_code": response.status_code,
            "client": client_label(request, context, client_addr_str),
            "listener": context.listener_name,
            "duration_ms": round((time.perf_counter() - started) * 1000, 3),
        },
    )
    return response.close_connection


def _prepare_worker(
    context: WorkerContext,
    client_socket: socket.socket,
    current_thread: threading.Thread,
):
    lifecycle = context.lifecycle
    if lifecycle is not None:
        lifecycle.register_worker(current_thread)
    if context.settings is not None:
        client_socket.settimeout(context.settings.socket_timeout)
    return lifecycle


def _drain_if_requested(lifecycle, client_socket: socket.socket) -> bool:
    if lifecycle is None or not lifecycle.is_draining():
        return False
    send_response(client_socket, draining_response())
    return True


@dataclass
class _WorkerResources:
    thread: threading.Thread
    client_socket: socket.socket
    client_addr_str: str


def _cleanup_worker(lifecycle, resources: _WorkerResources) -> None:
    if lifecycle is not None:
        lifecycle.cleanup_worker(resources.thread)

    try:
        resources.client_socket.shutdown(socket.SHUT_WR)
    except OSError:
        pass
    resources.client_socket.close()

    if WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
        WORKER_LOGGER.debug(
            "Socket closed",
            extra={"event": "socket_closed", "client": resources.client_addr_str},
        )
    clear_correlation_id()


def handle_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Process requests on a client socket until the connection is closed."""
    buffer = b""
    current_thread = threading.current_thread()
    lifecycle = _prepare_worker(context, client_socket, current_thread)
    client_addr_str = f"{client_address[0]}:{client_address[1]}"
    resources = _WorkerResources(current_thread, client_socket, client_addr_str)

    try:
        while True:
            set_correlation_id(generate_correlation_id())

            request, buffer, should_terminate = _read_request_with_validation(
                client_socket, buffer, client_addr_str
            )
            if should_terminate or request is None:
                clear_correlation_id()
                break

            if _drain_if_requested(lifecycle, client_socket):
                break

            should_terminate_connection = _process_request(
                request, context, client_socket, client_addr_str
            )
            clear_correlation_id()

            if should_terminate_connection:
                break
    except socket.timeout:
        if WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
            WORKER_LOGGER.debug(
                "Idle connection timed out",
                extra={"event": "connection_timeout", "client": client_addr_str},
            )
    except (ConnectionError, OSError, UnicodeError) as error:
        WORKER_LOGGER.error(
            "Error handling client connection",
            extra={
                "event": "connection_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
            },
        )
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Unexpected error in worker",
            extra={
                "event": "worker_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
                "error": str(error),
            },
            exc_info=True,
        )
    finally:
        _cleanup_worker(lifecycle, resources)
