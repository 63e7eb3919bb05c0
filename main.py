"""Static content HTTP server with history mode, header maps and redirects."""

import logging
import os
import signal
import sys
from typing import Mapping, Optional

from static_server.bootstrap.config import (
    ServerSettings,
    build_server_settings,
    parse_cli_args,
)
from static_server.bootstrap.logging_setup import configure_logging
from static_server.bootstrap.resolver import resolve
from static_server.bootstrap.socket_factory import create_server_socket
from static_server.domain.correlation_id import CorrelationLoggerAdapter
from static_server.domain.errors import ConfigParseError, ListenerError
from static_server.handlers.site_handler import Handler, build_handler
from static_server.lifecycle.state import ServerLifecycle
from static_server.security.cors import CorsConfig
from static_server.transport.accept_loop import Listener, run_server
from static_server.transport.context import HEALTH_ROLE, SITE_ROLE, WorkerContext

SERVER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("static_server.server"), {})


def build_listeners(
    settings: ServerSettings, handler: Handler, lifecycle: ServerLifecycle
) -> list[Listener]:
    """Bind the HTTP, optional HTTPS and optional health listeners."""
    cors_config = CorsConfig(allowed_origins=settings.allowed_origins)
    listeners: list[Listener] = []
    try:
        listeners.append(
            Listener(
                "http",
                create_server_socket(settings.http),
                WorkerContext(SITE_ROLE, handler, lifecycle, settings, cors_config, "http"),
            )
        )
        if settings.https_enabled and settings.https is not None:
            listeners.append(
                Listener(
                    "https",
                    create_server_socket(
                        settings.https, settings.tls_cert_path, settings.tls_key_path
                    ),
                    WorkerContext(
                        SITE_ROLE, handler, lifecycle, settings, cors_config, "https"
                    ),
                )
            )
        if settings.health_enabled and settings.health is not None:
            listeners.append(
                Listener(
                    "health",
                    create_server_socket(settings.health),
                    WorkerContext(HEALTH_ROLE, None, lifecycle, settings, None, "health"),
                )
            )
    except ListenerError:
        for listener in listeners:
            listener.server_socket.close()
        raise
    return listeners


def main(argv: Optional[list[str]] = None, env: Optional[Mapping[str, str]] = None) -> int:
    """Start the server; returns the process exit code."""
    env = os.environ if env is None else env
    args = parse_cli_args(sys.argv[1:] if argv is None else argv, env)
    configure_logging(args.log_level, args.log_destination, args.log_format == "json")
    settings = build_server_settings(args, env)

    try:
        config, _ = resolve(env, settings.serve_folder)
    except ConfigParseError as error:
        SERVER_LOGGER.critical(
            "Invalid configuration file",
            extra={"event": "config_invalid", "path": error.path, "error": str(error)},
        )
        return 1

    handler = build_handler(config)
    lifecycle = ServerLifecycle()
    try:
        listeners = build_listeners(settings, handler, lifecycle)
    except ListenerError as error:
        SERVER_LOGGER.critical(
            "Unable to start listeners",
            extra={"event": "listener_failed", "error": str(error)},
        )
        return 1

    def shutdown_handler(signum: int, _frame) -> None:
        SERVER_LOGGER.info(
            "Received shutdown signal",
            extra={"event": "signal_received", "signal": signum},
        )
        lifecycle.begin_draining(signal.Signals(signum).name)

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    SERVER_LOGGER.info(
        "Starting HTTP server",
        extra={
            "event": "server_starting",
            "host": settings.http.host,
            "port": settings.http.port,
            "directory": str(config.serve_root.resolve()),
            "log_destination": args.log_destination,
            "log_level": args.log_level,
            "tls": settings.https_enabled,
            "socket_timeout": settings.socket_timeout,
            "shutdown_grace_seconds": settings.shutdown_grace_seconds,
        },
    )
    run_server(listeners, lifecycle, settings.shutdown_grace_seconds)
    return 0


if __name__ == "__main__":
    sys.exit(main())
