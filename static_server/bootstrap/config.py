"""Server settings from environment variables and CLI arguments."""

import argparse
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

HEADER_DELIMITER = b"\r\n\r\n"
MAX_HEADER_BYTES = 64 * 1024
MAX_BODY_BYTES = 1024 * 1024
ALLOWED_METHODS = {"GET", "HEAD", "OPTIONS"}


def env_str(name: str, default: str, env: Optional[Mapping[str, str]] = None) -> str:
    """Return the variable's value, or ``default`` when it is unset or empty."""
    source = os.environ if env is None else env
    value = source.get(name)
    return value if value else default


def env_bool(name: str, default: bool, env: Optional[Mapping[str, str]] = None) -> bool:
    """Only the exact string ``true`` enables a flag."""
    return env_str(name, "true" if default else "false", env) == "true"


def env_int(name: str, default: int, env: Optional[Mapping[str, str]] = None) -> int:
    value = env_str(name, "", env)
    return int(value) if value else default


def env_list(
    name: str, default: list[str], env: Optional[Mapping[str, str]] = None
) -> list[str]:
    value = env_str(name, "", env)
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


def default_serve_folder(env: Optional[Mapping[str, str]] = None) -> str:
    """APP_SERVE_FOLDER, then KO_DATA_PATH, then the working directory."""
    return env_str("APP_SERVE_FOLDER", env_str("KO_DATA_PATH", os.getcwd(), env), env)


def parse_address(value: str, default_port: int) -> tuple[str, int]:
    """Split ``host:port`` or ``:port``; an empty host binds every interface."""
    host, sep, port = value.rpartition(":")
    if not sep:
        return value, default_port
    host = host.strip("[]")
    return host, int(port) if port else default_port


@dataclass(frozen=True)
class ListenerAddress:
    host: str
    port: int

    def __str__(self) -> str:
        return f"{self.host or '0.0.0.0'}:{self.port}"


@dataclass(frozen=True)
class ServerSettings:
    """Listener, transport and shutdown settings for the server front."""

    serve_folder: str
    http: ListenerAddress
    socket_timeout: int = 15
    shutdown_grace_seconds: int = 5
    https_enabled: bool = False
    https: Optional[ListenerAddress] = None
    tls_cert_path: str = ""
    tls_key_path: str = ""
    health_enabled: bool = True
    health: Optional[ListenerAddress] = None
    allowed_origins: list[str] = field(default_factory=lambda: ["*"])
    real_ip_header: str = ""


def parse_cli_args(
    argv: list[str], env: Optional[Mapping[str, str]] = None
) -> argparse.Namespace:
    """Return parsed CLI arguments; defaults come from the environment."""
    http_host, http_port = parse_address(env_str("APP_PORT", ":8080", env), 8080)
    parser = argparse.ArgumentParser(description="Static content HTTP server")
    parser.add_argument("--directory", default=default_serve_folder(env))
    parser.add_argument("--host", default=http_host)
    parser.add_argument("--port", type=int, default=http_port)
    parser.add_argument(
        "--log-level",
        default=env_str("APP_LOG_LEVEL", "INFO", env).upper(),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=env_str("APP_LOG_DESTINATION", "stdout", env),
        help="stdout or a file path",
    )
    parser.add_argument(
        "--log-format",
        default=env_str("APP_LOG_FORMAT", "json", env),
        choices=["json", "text"],
    )
    parser.add_argument(
        "--socket-timeout",
        type=int,
        default=env_int("APP_SOCKET_TIMEOUT", 15, env),
        help="Socket timeout in seconds for request processing",
    )
    parser.add_argument(
        "--shutdown-grace-seconds",
        type=int,
        default=env_int("APP_SHUTDOWN_GRACE_SECONDS", 5, env),
        help="Grace period in seconds for graceful shutdown",
    )
    parser.add_argument(
        "--health-port",
        type=int,
        default=None,
        help="Port for the /healthz listener (overrides APP_HEALTH_PORT)",
    )
    parser.add_argument(
        "--no-health",
        action="store_true",
        help="Disable the health listener",
    )
    return parser.parse_args(argv)


def build_server_settings(
    args: argparse.Namespace, env: Optional[Mapping[str, str]] = None
) -> ServerSettings:
    """Combine CLI arguments with the listener-related environment variables."""
    health_host, health_port = parse_address(
        env_str("APP_HEALTH_PORT", ":8081", env), 8081
    )
    if args.health_port is not None:
        health_port = args.health_port
    https_host, https_port = parse_address(
        env_str("APP_HTTPS_PORT", ":8443", env), 8443
    )
    return ServerSettings(
        serve_folder=args.directory,
        http=ListenerAddress(args.host, args.port),
        socket_timeout=args.socket_timeout,
        shutdown_grace_seconds=args.shutdown_grace_seconds,
        https_enabled=env_bool("APP_ENABLE_HTTPS", False, env),
        https=ListenerAddress(https_host, https_port),
        tls_cert_path=env_str("APP_HTTPS_CRT_PATH", "", env),
        tls_key_path=env_str("APP_HTTPS_KEY_PATH", "", env),
        health_enabled=env_bool("APP_HEALTH_PORT_ENABLED", True, env)
        and not args.no_health,
        health=ListenerAddress(health_host, health_port),
        allowed_origins=env_list("APP_HTTP_ALLOWED_ORIGINS", ["*"], env),
        real_ip_header=env_str("APP_HTTP_REAL_IP_HEADER", "", env).lower(),
    )
